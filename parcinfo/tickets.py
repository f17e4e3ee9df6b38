from flask import Blueprint
from flask_login import current_user

from .constants import TICKET_PRIORITY, TICKET_STATUS, label
from .crud import Column, Field, Screen
from .forms import UNASSIGNED, TicketForm
from .roles import Role
from .users import full_name

bp = Blueprint("tickets", __name__, template_folder="templates")

TECHNICIAN_ROLES = (Role.ADMIN.value, Role.TECHNICIEN.value)


def user_label(users_by_id, user_id, empty="Non assigné"):
    if not user_id:
        return empty
    user = users_by_id.get(str(user_id))
    if user is None:
        return "Inconnu"
    return full_name(user) or user.get("email") or "Inconnu"


def technician_choices(lookups):
    yield UNASSIGNED, "Non assigné"
    for u in lookups.get("users", []):
        if u.get("role") in TECHNICIAN_ROLES:
            yield u.get("id"), user_label({str(u.get("id")): u}, u.get("id"))


def creator_choices(lookups):
    users = lookups.get("users", [])
    if not users and current_user.is_authenticated:
        # liste des utilisateurs inaccessible: le créateur est l'utilisateur courant
        yield current_user.id, current_user.display_name
        return
    for u in users:
        yield u.get("id"), user_label({str(u.get("id")): u}, u.get("id"))


class TicketScreen(Screen):
    def filter_rows(self, rows, args):
        rows = super().filter_rows(rows, args)
        status = args.get("status") or ""
        priority = args.get("priority") or ""
        if status in TICKET_STATUS:
            rows = [r for r in rows if r.get("status") == status]
        if priority in TICKET_PRIORITY:
            rows = [r for r in rows if r.get("priority") == priority]
        return rows

    def list_context(self, rows, lookups):
        counts = {s: 0 for s in TICKET_STATUS}
        for r in rows:
            if r.get("status") in counts:
                counts[r["status"]] += 1
        return {"status_counts": counts, "filters": {"status": TICKET_STATUS, "priority": TICKET_PRIORITY}}


screen = TicketScreen(
    bp,
    noun="ticket",
    resource="/api/tickets",
    page="/tickets",
    form=TicketForm,
    title="Système de Tickets",
    singular="Ticket",
    lookups={"users": "/api/users"},
    empty_message="Aucun ticket",
    search_keys=("title", "description"),
    columns=[
        Column("Titre", "title"),
        Column("Priorité", render=lambda r, refs: label(TICKET_PRIORITY, r.get("priority"))),
        Column("Statut", render=lambda r, refs: label(TICKET_STATUS, r.get("status"))),
        Column("Créé par", render=lambda r, refs: user_label(refs.get("users", {}), r.get("createdBy"), "—")),
        Column("Assigné à", render=lambda r, refs: user_label(refs.get("users", {}), r.get("assignedTo"))),
    ],
    fields=[
        Field("title", "Titre", placeholder="Résumé du problème"),
        Field("description", "Description", "textarea"),
        Field("priority", "Priorité", "select", TICKET_PRIORITY),
        Field("status", "Statut", "select", TICKET_STATUS),
        Field("createdBy", "Créé par", "select", creator_choices),
        Field("assignedTo", "Assigné à", "select", technician_choices),
    ],
).register()
