from flask import Blueprint, redirect, render_template, url_for

from .api import ApiError
from .auth import page_required
from .constants import EQUIPMENT_STATUS, EQUIPMENT_TYPES, label
from .crud import Column, Field, Screen
from .forms import UNASSIGNED, EquipmentForm
from .state import current_state
from .time_helpers import form_date

bp = Blueprint("equipment", __name__, template_folder="templates")

RESOURCE = "/api/equipment"


def employee_label(employees_by_id, emp_id):
    """Libellé d'un employé référencé; une référence orpheline donne "Inconnu"."""
    if not emp_id:
        return "Non assigné"
    emp = employees_by_id.get(str(emp_id))
    if emp is None:
        return "Inconnu"
    return emp.get("name") or "Inconnu"


def employee_choices(lookups):
    yield UNASSIGNED, "Non assigné"
    for emp in lookups.get("employees", []):
        yield emp.get("id"), f"{emp.get('name', '')} - {emp.get('department', '')}"


screen = Screen(
    bp,
    noun="equipment",
    resource=RESOURCE,
    page="/equipment",
    form=EquipmentForm,
    title="Gestion des Équipements",
    singular="Équipement",
    lookups={"employees": "/api/employees"},
    empty_message="Aucun équipement enregistré",
    search_keys=("model", "serialNumber", "type", "status"),
    detail="equipment.history",
    columns=[
        Column("Type", render=lambda r, refs: label(EQUIPMENT_TYPES, r.get("type"))),
        Column("Modèle", "model"),
        Column("N° de série", "serialNumber"),
        Column("Date d'achat", render=lambda r, refs: form_date(r.get("purchaseDate"))),
        Column("Statut", render=lambda r, refs: label(EQUIPMENT_STATUS, r.get("status"))),
        Column("Assigné à", render=lambda r, refs: employee_label(refs.get("employees", {}), r.get("assignedTo"))),
    ],
    fields=[
        Field("type", "Type d'équipement", "select", EQUIPMENT_TYPES),
        Field("status", "Statut", "select", EQUIPMENT_STATUS),
        Field("model", "Modèle", placeholder="ex: Dell OptiPlex 7090"),
        Field("serialNumber", "Numéro de série", placeholder="ex: SN123456789"),
        Field("purchaseDate", "Date d'achat", "date"),
        Field("assignedTo", "Assigné à (optionnel)", "select", employee_choices),
    ],
).register()


@bp.route("/<item_id>/history")
@page_required("/equipment")
def history(item_id):
    client = current_state().client
    entity = screen.fetch(item_id)
    if entity is None:
        return redirect(url_for("equipment.list_view"))
    events, load_error = [], None
    try:
        events = client.query(f"{RESOURCE}/{item_id}/history") or []
    except ApiError as e:
        load_error = e.message
    events = sorted(events, key=lambda ev: ev.get("date") or ev.get("createdAt") or "", reverse=True)
    return render_template("equipment_history.html", equipment=entity, events=events, load_error=load_error)
