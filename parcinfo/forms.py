"""Validation des formulaires et transformation en payload pour l'API.

Chaque formulaire reçoit les champs bruts (chaînes) tels que postés par le
navigateur. `validate_form` renvoie soit le formulaire validé, soit un dict
champ -> premier message d'erreur. `to_payload()` produit le JSON envoyé à
l'API; `from_entity()` fait le chemin inverse pour pré-remplir l'édition.
"""
import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import ClassVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from .constants import (
    EQUIPMENT_STATUS, EQUIPMENT_TYPES, INVENTORY_CONDITION, MAINTENANCE_TYPES,
    TICKET_PRIORITY, TICKET_STATUS, canonical_maintenance_status,
)
from .roles import ROLE_LABELS
from .time_helpers import form_date, parse_form_date, parse_form_datetime, to_api_datetime

# Valeur "aucune sélection" des <select> d'assignation
UNASSIGNED = "unassigned"

TRUTHY = ("on", "true", "1", "yes")


def _fail(message, kind="invalid"):
    raise PydanticCustomError(kind, message)


def validate_form(form_cls, raw, context=None):
    data = {name: raw.get(name) for name in form_cls.model_fields}
    try:
        return form_cls.model_validate(data, context=context or {}), {}
    except ValidationError as e:
        errors = {}
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "__all__"
            errors.setdefault(field, err["msg"])
        return None, errors


# ---- conversions ----

def none_if_blank(value):
    if value is None:
        return None
    value = str(value).strip()
    if value == "" or value == UNASSIGNED:
        return None
    return value


def to_cents(text):
    amount = Decimal(str(text).replace(",", "."))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_text(cents):
    if cents is None or cents == "":
        return ""
    return f"{Decimal(cents) / 100:.2f}"


def _str(value):
    return "" if value is None else str(value)


def check_email(value):
    if not value:
        return value
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        _fail("Email invalide", "email")
    return value


def check_uuid(value, message):
    if not value or value == UNASSIGNED:
        return value
    try:
        uuid.UUID(value)
    except ValueError:
        _fail(message, "uuid")
    return value


# ---- base ----

class EntityForm(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_default=True)

    # champ -> message si vide
    REQUIRED: ClassVar[dict] = {}
    # champ -> valeurs admises
    CHOICES: ClassVar[dict] = {}
    # champs à ne pas nettoyer (mots de passe)
    RAW: ClassVar[tuple] = ()

    @field_validator("*", mode="before")
    @classmethod
    def _clean(cls, value, info):
        if value is None:
            value = ""
        if isinstance(value, str) and info.field_name not in cls.RAW:
            value = value.strip()
        if value == "" and info.field_name in cls.REQUIRED:
            _fail(cls.REQUIRED[info.field_name], "required")
        return value

    @field_validator("*")
    @classmethod
    def _choices(cls, value, info):
        allowed = cls.CHOICES.get(info.field_name)
        if allowed is not None and value != "" and value not in allowed:
            _fail("Valeur invalide", "choice")
        return value

    def to_payload(self):
        return self.model_dump()

    @classmethod
    def from_entity(cls, entity):
        return {name: _str(entity.get(name)) for name in cls.model_fields}

    @classmethod
    def defaults(cls, user=None):
        return {name: "" for name in cls.model_fields}


# ---- entités ----

class EmployeeForm(EntityForm):
    REQUIRED = {
        "name": "Le nom est requis",
        "email": "L'email est requis",
        "department": "Le département est requis",
        "position": "Le poste est requis",
    }

    name: str = ""
    email: str = ""
    department: str = ""
    position: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return check_email(value)


class EquipmentForm(EntityForm):
    REQUIRED = {
        "type": "Le type est requis",
        "model": "Le modèle est requis",
        "serialNumber": "Le numéro de série est requis",
        "purchaseDate": "La date d'achat est requise",
        "status": "Le statut est requis",
    }
    CHOICES = {"type": EQUIPMENT_TYPES, "status": EQUIPMENT_STATUS}

    type: str = ""
    model: str = ""
    serialNumber: str = ""
    purchaseDate: str = ""
    status: str = ""
    assignedTo: str = ""

    @field_validator("purchaseDate")
    @classmethod
    def _date(cls, value):
        if parse_form_date(value) is None:
            _fail("Date invalide", "date")
        return value

    def to_payload(self):
        return {
            "type": self.type,
            "model": self.model,
            "serialNumber": self.serialNumber,
            "purchaseDate": to_api_datetime(parse_form_date(self.purchaseDate)),
            "status": self.status,
            "assignedTo": none_if_blank(self.assignedTo),
        }

    @classmethod
    def from_entity(cls, entity):
        data = super().from_entity(entity)
        data["purchaseDate"] = form_date(entity.get("purchaseDate"))
        data["assignedTo"] = entity.get("assignedTo") or UNASSIGNED
        return data

    @classmethod
    def defaults(cls, user=None):
        return dict(super().defaults(), type="ordinateur", status="en service", assignedTo=UNASSIGNED)


class UserForm(EntityForm):
    REQUIRED = {"email": "L'email est requis", "role": "Le rôle est requis"}
    CHOICES = {"role": {r.value for r in ROLE_LABELS}}
    RAW = ("password",)

    email: str = ""
    firstName: str = ""
    lastName: str = ""
    role: str = ""
    isActive: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return check_email(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value, info):
        editing = (info.context or {}).get("editing", False)
        if not value:
            if not editing:
                _fail("Le mot de passe est requis", "required")
            return value
        if len(value) < 6:
            _fail("Le mot de passe doit contenir au moins 6 caractères", "too_short")
        return value

    def to_payload(self):
        payload = {
            "email": self.email,
            "firstName": none_if_blank(self.firstName),
            "lastName": none_if_blank(self.lastName),
            "role": self.role,
            "isActive": self.isActive.lower() in TRUTHY,
        }
        if self.password:
            payload["password"] = self.password
        return payload

    @classmethod
    def from_entity(cls, entity):
        data = super().from_entity(entity)
        data["isActive"] = "on" if entity.get("isActive", True) else ""
        data["password"] = ""
        return data

    @classmethod
    def defaults(cls, user=None):
        return dict(super().defaults(), role="utilisateur", isActive="on")


class TicketForm(EntityForm):
    REQUIRED = {
        "title": "Le titre est requis",
        "description": "La description est requise",
        "createdBy": "Le créateur est requis",
        "status": "Le statut est requis",
        "priority": "La priorité est requise",
    }
    CHOICES = {"status": TICKET_STATUS, "priority": TICKET_PRIORITY}

    title: str = ""
    description: str = ""
    createdBy: str = ""
    assignedTo: str = ""
    status: str = ""
    priority: str = ""

    def to_payload(self):
        return {
            "title": self.title,
            "description": self.description,
            "createdBy": self.createdBy,
            "assignedTo": none_if_blank(self.assignedTo),
            "status": self.status,
            "priority": self.priority,
        }

    @classmethod
    def from_entity(cls, entity):
        data = super().from_entity(entity)
        data["assignedTo"] = entity.get("assignedTo") or UNASSIGNED
        return data

    @classmethod
    def defaults(cls, user=None):
        return dict(
            super().defaults(),
            status="ouvert",
            priority="moyenne",
            assignedTo=UNASSIGNED,
            createdBy=_str(getattr(user, "id", "")),
        )


class InventoryForm(EntityForm):
    REQUIRED = {
        "equipmentId": "L'équipement est requis",
        "location": "La localisation est requise",
        "condition": "L'état est requis",
    }
    CHOICES = {"condition": INVENTORY_CONDITION}

    equipmentId: str = ""
    assignedTo: str = ""
    location: str = ""
    lastChecked: str = ""
    condition: str = ""

    @field_validator("equipmentId")
    @classmethod
    def _equipment(cls, value):
        return check_uuid(value, "L'ID de l'équipement doit être un UUID valide")

    @field_validator("assignedTo")
    @classmethod
    def _assignee(cls, value):
        return check_uuid(value, "L'ID de l'employé doit être un UUID valide")

    @field_validator("lastChecked")
    @classmethod
    def _checked(cls, value):
        if value and parse_form_date(value) is None:
            _fail("Date invalide", "date")
        return value

    def to_payload(self):
        return {
            "equipmentId": self.equipmentId,
            "assignedTo": none_if_blank(self.assignedTo),
            "location": self.location,
            "lastChecked": to_api_datetime(parse_form_date(self.lastChecked)),
            "condition": self.condition,
        }

    @classmethod
    def from_entity(cls, entity):
        data = super().from_entity(entity)
        data["assignedTo"] = entity.get("assignedTo") or UNASSIGNED
        data["lastChecked"] = form_date(entity.get("lastChecked"))
        return data

    @classmethod
    def defaults(cls, user=None):
        return dict(super().defaults(), condition="fonctionnel", assignedTo=UNASSIGNED)


class LicenseForm(EntityForm):
    REQUIRED = {
        "name": "Le nom est requis",
        "vendor": "Le fournisseur est requis",
        "type": "Le type est requis",
    }

    name: str = ""
    vendor: str = ""
    type: str = ""
    licenseKey: str = ""
    maxUsers: str = ""
    currentUsers: str = ""
    cost: str = ""
    expiryDate: str = ""

    @field_validator("maxUsers")
    @classmethod
    def _max_users(cls, value):
        if value:
            try:
                n = int(value)
            except ValueError:
                _fail("Doit être un nombre entier", "int")
            if n < 1:
                _fail("Doit être supérieur ou égal à 1", "min")
        return value

    @field_validator("currentUsers")
    @classmethod
    def _current_users(cls, value):
        if value:
            try:
                n = int(value)
            except ValueError:
                _fail("Doit être un nombre entier", "int")
            if n < 0:
                _fail("Doit être positif", "min")
        return value

    @field_validator("cost")
    @classmethod
    def _cost(cls, value):
        if value:
            try:
                amount = Decimal(value.replace(",", "."))
            except InvalidOperation:
                _fail("Montant invalide", "decimal")
            if not amount.is_finite() or amount < 0:
                _fail("Montant invalide", "decimal")
            try:
                to_cents(value)
            except InvalidOperation:
                _fail("Montant invalide", "decimal")
        return value

    @field_validator("expiryDate")
    @classmethod
    def _expiry(cls, value):
        if value and parse_form_date(value) is None:
            _fail("Date invalide", "date")
        return value

    def to_payload(self):
        return {
            "name": self.name,
            "vendor": self.vendor,
            "type": self.type,
            "licenseKey": none_if_blank(self.licenseKey),
            "maxUsers": int(self.maxUsers) if self.maxUsers else None,
            "currentUsers": int(self.currentUsers or "0"),
            "cost": to_cents(self.cost) if self.cost else None,
            "expiryDate": to_api_datetime(parse_form_date(self.expiryDate)),
        }

    @classmethod
    def from_entity(cls, entity):
        data = super().from_entity(entity)
        data["currentUsers"] = _str(entity.get("currentUsers") or 0)
        data["cost"] = cents_to_text(entity.get("cost"))
        data["expiryDate"] = form_date(entity.get("expiryDate"))
        return data

    @classmethod
    def defaults(cls, user=None):
        return dict(super().defaults(), currentUsers="0")


class MaintenanceForm(EntityForm):
    REQUIRED = {
        "type": "Le type est requis",
        "title": "Le titre est requis",
        "description": "La description est requise",
        "startDate": "La date de début est requise",
        "endDate": "La date de fin est requise",
    }
    CHOICES = {"type": MAINTENANCE_TYPES}

    type: str = ""
    title: str = ""
    description: str = ""
    startDate: str = ""
    endDate: str = ""
    status: str = ""
    notes: str = ""

    @field_validator("startDate")
    @classmethod
    def _start(cls, value):
        if parse_form_datetime(value) is None:
            _fail("Date invalide", "date")
        return value

    @field_validator("endDate")
    @classmethod
    def _end(cls, value, info):
        end = parse_form_datetime(value)
        if end is None:
            _fail("Date invalide", "date")
        start = parse_form_datetime(info.data.get("startDate"))
        if start is not None and end <= start:
            _fail("La date de fin doit être postérieure à la date de début", "date_order")
        return value

    @field_validator("status")
    @classmethod
    def _status(cls, value):
        if not value:
            return "planifie"
        status = canonical_maintenance_status(value)
        if status is None:
            _fail("Statut invalide", "choice")
        return status

    def to_payload(self):
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "startDate": to_api_datetime(parse_form_datetime(self.startDate)),
            "endDate": to_api_datetime(parse_form_datetime(self.endDate)),
            "status": self.status,
            "notes": none_if_blank(self.notes),
        }

    @classmethod
    def from_entity(cls, entity):
        data = super().from_entity(entity)
        data["startDate"] = form_date(entity.get("startDate"))
        data["endDate"] = form_date(entity.get("endDate"))
        data["status"] = canonical_maintenance_status(entity.get("status")) or "planifie"
        return data

    @classmethod
    def defaults(cls, user=None):
        return dict(super().defaults(), type="preventive", status="planifie")


# ---- compte ----

class LoginForm(EntityForm):
    REQUIRED = {"email": "L'email est requis", "password": "Le mot de passe est requis"}
    RAW = ("password",)

    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return check_email(value)


class RegisterForm(EntityForm):
    REQUIRED = {
        "firstName": "Le prénom est requis",
        "lastName": "Le nom est requis",
        "email": "L'email est requis",
        "password": "Le mot de passe est requis",
        "confirmPassword": "Veuillez confirmer le mot de passe",
    }
    RAW = ("password", "confirmPassword")

    firstName: str = ""
    lastName: str = ""
    email: str = ""
    password: str = ""
    confirmPassword: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return check_email(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value):
        if len(value) < 6:
            _fail("Le mot de passe doit contenir au moins 6 caractères", "too_short")
        return value

    @field_validator("confirmPassword")
    @classmethod
    def _confirm(cls, value, info):
        if "password" in info.data and value != info.data["password"]:
            _fail("Les mots de passe ne correspondent pas", "mismatch")
        return value

    def to_payload(self):
        return {
            "email": self.email,
            "password": self.password,
            "firstName": self.firstName,
            "lastName": self.lastName,
        }


class ProfileForm(EntityForm):
    REQUIRED = {"email": "L'email est requis"}

    firstName: str = ""
    lastName: str = ""
    email: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return check_email(value)

    def to_payload(self):
        return {
            "firstName": none_if_blank(self.firstName),
            "lastName": none_if_blank(self.lastName),
            "email": self.email,
        }


class PasswordForm(EntityForm):
    REQUIRED = {
        "currentPassword": "Le mot de passe actuel est requis",
        "newPassword": "Le nouveau mot de passe est requis",
        "confirmPassword": "Veuillez confirmer le mot de passe",
    }
    RAW = ("currentPassword", "newPassword", "confirmPassword")

    currentPassword: str = ""
    newPassword: str = ""
    confirmPassword: str = ""

    @field_validator("newPassword")
    @classmethod
    def _new(cls, value):
        if len(value) < 6:
            _fail("Le mot de passe doit contenir au moins 6 caractères", "too_short")
        return value

    @field_validator("confirmPassword")
    @classmethod
    def _confirm(cls, value, info):
        if "newPassword" in info.data and value != info.data["newPassword"]:
            _fail("Les mots de passe ne correspondent pas", "mismatch")
        return value

    def to_payload(self):
        return {"currentPassword": self.currentPassword, "newPassword": self.newPassword}
