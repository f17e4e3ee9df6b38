"""Licences logicielles: échéances, taux d'utilisation et totaux."""
import logging
from collections import namedtuple
from decimal import Decimal

from flask import Blueprint

from .api import ApiError
from .constants import LICENSE_TYPES
from .crud import Column, Field, Screen
from .forms import LicenseForm
from .state import current_state
from .time_helpers import days_until, now_local, parse_api_datetime

log = logging.getLogger(__name__)

bp = Blueprint("licenses", __name__, template_folder="templates")

EXPIRING_WINDOW_DAYS = 30

Expiry = namedtuple("Expiry", "status label days")
Usage = namedtuple("Usage", "level label percent")


def expiry_status(expiry, now):
    """Classe une date d'expiration: none, expired, expiring (<= 30 jours) ou valid.

    Les jours restants sont arrondis au supérieur.
    """
    expires_at = parse_api_datetime(expiry)
    if expires_at is None:
        return Expiry("none", "Aucune", None)
    days = days_until(expires_at, now)
    if days < 0:
        return Expiry("expired", "Expirée", days)
    if days <= EXPIRING_WINDOW_DAYS:
        return Expiry("expiring", f"{days} jours", days)
    return Expiry("valid", "Valide", days)


def usage_status(current, maximum):
    current = current or 0
    if not maximum:
        return Usage("unlimited", "Illimité", None)
    percent = current * 100 / maximum
    if percent >= 90:
        level = "critical"
    elif percent >= 70:
        level = "high"
    else:
        level = "normal"
    return Usage(level, f"{current} / {maximum}", round(percent))


def license_stats(licenses, expiring, now):
    """Totaux affichés en tête de liste; `totalCost` est en euros."""
    expired = 0
    for lic in licenses:
        expires_at = parse_api_datetime(lic.get("expiryDate"))
        if expires_at is not None and expires_at < now:
            expired += 1
    cents = sum(lic.get("cost") or 0 for lic in licenses)
    return {
        "total": len(licenses),
        "expired": expired,
        "active": len(licenses) - expired,
        "expiring": len(expiring or []),
        "totalCost": Decimal(cents) / 100,
    }


class LicenseScreen(Screen):
    list_template = "licenses_list.html"

    def list_context(self, rows, lookups):
        expiring = []
        try:
            expiring = current_state().client.query(f"{self.resource}/expiring/{EXPIRING_WINDOW_DAYS}") or []
        except ApiError as e:
            log.warning("Licences expirant bientôt indisponibles: %s", e.message)
        now = now_local()
        return {
            "stats": license_stats(rows, expiring, now),
            "expiry": {str(r.get("id")): expiry_status(r.get("expiryDate"), now) for r in rows},
            "usage": {str(r.get("id")): usage_status(r.get("currentUsers"), r.get("maxUsers")) for r in rows},
        }


screen = LicenseScreen(
    bp,
    noun="license",
    resource="/api/licenses",
    page="/licenses",
    form=LicenseForm,
    title="Gestion des Licences",
    singular="Licence",
    empty_message="Aucune licence enregistrée",
    search_keys=("name", "vendor", "type"),
    columns=[
        Column("Nom", "name"),
        Column("Éditeur", "vendor"),
        Column("Type", "type"),
    ],
    fields=[
        Field("name", "Nom", placeholder="ex: Office 365 E3"),
        Field("vendor", "Éditeur", placeholder="ex: Microsoft"),
        Field("type", "Type", "select", LICENSE_TYPES),
        Field("licenseKey", "Clé de licence"),
        Field("maxUsers", "Utilisateurs max.", "number", help="Laisser vide pour illimité."),
        Field("currentUsers", "Utilisateurs actuels", "number"),
        Field("cost", "Coût (€)", placeholder="ex: 12.50"),
        Field("expiryDate", "Date d'expiration", "date"),
    ],
).register()
