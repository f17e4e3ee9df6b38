import pytest

from parcinfo.forms import (
    UNASSIGNED, EmployeeForm, EquipmentForm, InventoryForm, LicenseForm, MaintenanceForm,
    RegisterForm, TicketForm, UserForm, cents_to_text, none_if_blank, to_cents, validate_form,
)

EQUIPMENT = {
    "type": "ordinateur", "model": "OptiPlex 7090", "serialNumber": "SN123",
    "purchaseDate": "2024-02-01", "status": "en service", "assignedTo": UNASSIGNED,
}
MAINTENANCE = {
    "type": "preventive", "title": "Serveurs", "description": "Patchs",
    "startDate": "2024-05-10", "endDate": "2024-05-11",
}


class TestConversions:
    @pytest.mark.parametrize("text,cents", [("12.50", 1250), ("12,5", 1250), ("0", 0), ("0.005", 1), ("199.99", 19999)])
    def test_to_cents(self, text, cents):
        assert to_cents(text) == cents

    def test_cents_to_text(self):
        assert cents_to_text(1250) == "12.50"
        assert cents_to_text(5) == "0.05"
        assert cents_to_text(None) == ""

    def test_none_if_blank(self):
        assert none_if_blank("  ") is None
        assert none_if_blank(UNASSIGNED) is None
        assert none_if_blank(" x ") == "x"


class TestEquipment:
    def test_valid_payload(self):
        form, errors = validate_form(EquipmentForm, EQUIPMENT)
        assert errors == {}
        payload = form.to_payload()
        assert payload["assignedTo"] is None
        assert payload["purchaseDate"] == "2024-02-01T00:00:00.000Z"

    def test_required_and_choices(self):
        form, errors = validate_form(EquipmentForm, dict(EQUIPMENT, model="  ", status="cassé"))
        assert form is None
        assert errors["model"] == "Le modèle est requis"
        assert errors["status"] == "Valeur invalide"

    def test_bad_date(self):
        _, errors = validate_form(EquipmentForm, dict(EQUIPMENT, purchaseDate="01/02/2024"))
        assert errors == {"purchaseDate": "Date invalide"}

    def test_from_entity(self):
        values = EquipmentForm.from_entity({"type": "serveur", "purchaseDate": "2023-06-01T00:00:00.000Z",
                                            "assignedTo": None})
        assert values["purchaseDate"] == "2023-06-01"
        assert values["assignedTo"] == UNASSIGNED


class TestEmployee:
    def test_email_format(self):
        _, errors = validate_form(EmployeeForm, {"name": "Jean", "email": "jean@", "department": "IT",
                                                 "position": "Dev"})
        assert errors == {"email": "Email invalide"}

    def test_missing_fields(self):
        _, errors = validate_form(EmployeeForm, {})
        assert set(errors) == {"name", "email", "department", "position"}


class TestUser:
    BASE = {"email": "lea@parc.fr", "role": "technicien", "isActive": "on"}

    def test_password_required_on_create(self):
        _, errors = validate_form(UserForm, self.BASE)
        assert errors == {"password": "Le mot de passe est requis"}

    def test_password_optional_on_edit(self):
        form, errors = validate_form(UserForm, self.BASE, context={"editing": True})
        assert errors == {}
        payload = form.to_payload()
        assert "password" not in payload
        assert payload["isActive"] is True

    def test_short_password(self):
        _, errors = validate_form(UserForm, dict(self.BASE, password="abc"))
        assert "6 caractères" in errors["password"]

    def test_unknown_role(self):
        _, errors = validate_form(UserForm, dict(self.BASE, role="root", password="abcdef"))
        assert errors == {"role": "Valeur invalide"}

    def test_inactive(self):
        form, _ = validate_form(UserForm, dict(self.BASE, isActive="", password="abcdef"))
        assert form.to_payload()["isActive"] is False


class TestTicket:
    def test_defaults_use_current_user(self):
        class Me:
            id = "u-42"
        values = TicketForm.defaults(Me())
        assert values["createdBy"] == "u-42"
        assert values["status"] == "ouvert"
        assert values["priority"] == "moyenne"
        assert values["assignedTo"] == UNASSIGNED

    def test_unassigned(self):
        form, errors = validate_form(TicketForm, {
            "title": "Imprimante", "description": "Bourrage", "createdBy": "u-1",
            "status": "ouvert", "priority": "basse", "assignedTo": UNASSIGNED,
        })
        assert errors == {}
        assert form.to_payload()["assignedTo"] is None


class TestInventory:
    def test_uuid_checks(self):
        _, errors = validate_form(InventoryForm, {
            "equipmentId": "pas-un-uuid", "location": "B204", "condition": "fonctionnel",
            "assignedTo": "toujours-pas",
        })
        assert errors["equipmentId"] == "L'ID de l'équipement doit être un UUID valide"
        assert errors["assignedTo"] == "L'ID de l'employé doit être un UUID valide"

    def test_valid(self):
        form, errors = validate_form(InventoryForm, {
            "equipmentId": "0b0e1f62-3c4d-4f5e-8a9b-1c2d3e4f5a6b", "location": "B204",
            "condition": "défectueux", "assignedTo": UNASSIGNED, "lastChecked": "",
        })
        assert errors == {}
        payload = form.to_payload()
        assert payload["assignedTo"] is None
        assert payload["lastChecked"] is None


class TestLicense:
    BASE = {"name": "Office", "vendor": "Microsoft", "type": "Microsoft Office"}

    def test_cost_round_trip(self):
        form, _ = validate_form(LicenseForm, dict(self.BASE, cost="12.50"))
        payload = form.to_payload()
        assert payload["cost"] == 1250
        assert LicenseForm.from_entity(dict(self.BASE, cost=payload["cost"]))["cost"] == "12.50"

    def test_empty_numbers(self):
        form, _ = validate_form(LicenseForm, dict(self.BASE, cost="", maxUsers="", currentUsers=""))
        payload = form.to_payload()
        assert payload["cost"] is None
        assert payload["maxUsers"] is None
        assert payload["currentUsers"] == 0

    @pytest.mark.parametrize("field,value", [
        ("maxUsers", "0"), ("maxUsers", "deux"), ("currentUsers", "-1"),
        ("cost", "-3"), ("cost", "abc"), ("cost", "NaN"), ("cost", "1e27"),
        ("expiryDate", "demain"),
    ])
    def test_rejected_values(self, field, value):
        form, errors = validate_form(LicenseForm, dict(self.BASE, **{field: value}))
        assert form is None
        assert field in errors


class TestMaintenance:
    def test_end_before_start(self):
        form, errors = validate_form(MaintenanceForm, dict(MAINTENANCE, endDate="2024-05-09"))
        assert form is None
        assert errors == {"endDate": "La date de fin doit être postérieure à la date de début"}

    def test_end_equal_start(self):
        _, errors = validate_form(MaintenanceForm, dict(MAINTENANCE, endDate="2024-05-10"))
        assert "endDate" in errors

    def test_missing_dates(self):
        _, errors = validate_form(MaintenanceForm, dict(MAINTENANCE, startDate="", endDate=""))
        assert errors["startDate"] == "La date de début est requise"
        assert errors["endDate"] == "La date de fin est requise"

    def test_default_status_and_notes(self):
        form, _ = validate_form(MaintenanceForm, MAINTENANCE)
        payload = form.to_payload()
        assert payload["status"] == "planifie"
        assert payload["notes"] is None

    @pytest.mark.parametrize("given,stored", [
        ("planifié", "planifie"), ("en cours", "en_cours"), ("terminé", "termine"),
        ("annule", "annule"),
    ])
    def test_status_aliases(self, given, stored):
        form, _ = validate_form(MaintenanceForm, dict(MAINTENANCE, status=given))
        assert form.to_payload()["status"] == stored

    def test_unknown_status(self):
        _, errors = validate_form(MaintenanceForm, dict(MAINTENANCE, status="perdu"))
        assert errors == {"status": "Statut invalide"}


def test_register_confirmation():
    _, errors = validate_form(RegisterForm, {
        "firstName": "Léa", "lastName": "Petit", "email": "lea@parc.fr",
        "password": "abcdef", "confirmPassword": "abcdeg",
    })
    assert errors == {"confirmPassword": "Les mots de passe ne correspondent pas"}
