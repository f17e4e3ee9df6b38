from flask import Blueprint

from .constants import EQUIPMENT_TYPES, INVENTORY_CONDITION, label
from .crud import Column, Field, Screen
from .equipment import employee_choices, employee_label
from .forms import InventoryForm
from .time_helpers import form_date

bp = Blueprint("inventory", __name__, template_folder="templates")

CONDITIONS = tuple(INVENTORY_CONDITION)


def equipment_label(equipment_by_id, equipment_id):
    eq = equipment_by_id.get(str(equipment_id)) if equipment_id else None
    if eq is None:
        return "Inconnu"
    return f"{label(EQUIPMENT_TYPES, eq.get('type'))} {eq.get('model', '')} ({eq.get('serialNumber', '')})"


def equipment_choices(lookups):
    for eq in lookups.get("equipment", []):
        yield eq.get("id"), equipment_label({str(eq.get("id")): eq}, eq.get("id"))


class InventoryScreen(Screen):
    def filter_rows(self, rows, args):
        rows = super().filter_rows(rows, args)
        condition = args.get("condition") or ""
        if condition in CONDITIONS:
            rows = [r for r in rows if r.get("condition") == condition]
        return rows

    def list_context(self, rows, lookups):
        return {"filters": {"condition": INVENTORY_CONDITION}}


screen = InventoryScreen(
    bp,
    noun="inventory",
    resource="/api/inventory",
    page="/inventory",
    form=InventoryForm,
    title="Inventaire",
    singular="Élément d'inventaire",
    lookups={"equipment": "/api/equipment", "employees": "/api/employees"},
    empty_message="Aucun élément d'inventaire",
    search_keys=("location",),
    columns=[
        Column("Équipement", render=lambda r, refs: equipment_label(refs.get("equipment", {}), r.get("equipmentId"))),
        Column("Localisation", "location"),
        Column("Assigné à", render=lambda r, refs: employee_label(refs.get("employees", {}), r.get("assignedTo"))),
        Column("Dernière vérification", render=lambda r, refs: form_date(r.get("lastChecked")) or "—"),
        Column("État", render=lambda r, refs: label(INVENTORY_CONDITION, r.get("condition"))),
    ],
    fields=[
        Field("equipmentId", "Équipement", "select", equipment_choices),
        Field("location", "Localisation", placeholder="ex: Bureau 204"),
        Field("assignedTo", "Assigné à (optionnel)", "select", employee_choices),
        Field("lastChecked", "Dernière vérification", "date"),
        Field("condition", "État", "select", INVENTORY_CONDITION),
    ],
).register()
