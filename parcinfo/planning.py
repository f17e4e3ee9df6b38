import calendar
from datetime import timedelta

from flask import Blueprint, request

from .constants import MAINTENANCE_STATUS, MAINTENANCE_TYPES, label, maintenance_status_label
from .crud import Column, Field, Screen
from .forms import MaintenanceForm
from .time_helpers import now_local, parse_api_datetime, parse_form_date, to_local

bp = Blueprint("planning", __name__, template_folder="templates")

MONTHS_FR = (
    "", "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)


def local_day(value):
    dt = parse_api_datetime(value)
    return to_local(dt).date() if dt else None


def events_for_date(maintenances, day):
    """Maintenances dont la date de début tombe le jour `day` (heure locale)."""
    return [m for m in maintenances if local_day(m.get("startDate")) == day]


def month_grid(day, maintenances):
    """Semaines du mois de `day`; chaque case: (date, dans_le_mois, a_des_evenements)."""
    busy = {local_day(m.get("startDate")) for m in maintenances}
    cal = calendar.Calendar(firstweekday=0)
    return [
        [(d, d.month == day.month, d in busy) for d in week]
        for week in cal.monthdatescalendar(day.year, day.month)
    ]


def format_day_fr(day):
    return f"{day.day} {MONTHS_FR[day.month]} {day.year}"


def _shift_month(day, months):
    first = day.replace(day=1)
    if months > 0:
        return (first + timedelta(days=32)).replace(day=1)
    return (first - timedelta(days=1)).replace(day=1)


class PlanningScreen(Screen):
    list_template = "planning_list.html"

    def list_context(self, rows, lookups):
        selected = parse_form_date(request.args.get("date")) or now_local().date()
        return {
            "selected": selected,
            "selected_label": format_day_fr(selected),
            "month_label": f"{MONTHS_FR[selected.month]} {selected.year}",
            "prev_month": _shift_month(selected, -1),
            "next_month": _shift_month(selected, 1),
            "today": now_local().date(),
            "weeks": month_grid(selected, rows),
            "events": events_for_date(rows, selected),
        }


def _hours(row):
    start, end = parse_api_datetime(row.get("startDate")), parse_api_datetime(row.get("endDate"))
    if not start or not end:
        return ""
    return f"{to_local(start):%H:%M} - {to_local(end):%H:%M}"


screen = PlanningScreen(
    bp,
    noun="maintenance",
    resource="/api/maintenance",
    page="/planning",
    form=MaintenanceForm,
    title="Planning des Maintenances",
    singular="Maintenance",
    empty_message="Aucune maintenance planifiée",
    search_keys=("title", "description"),
    columns=[
        Column("Titre", "title"),
        Column("Type", render=lambda r, refs: label(MAINTENANCE_TYPES, r.get("type"))),
        Column("Horaires", render=lambda r, refs: _hours(r)),
        Column("Statut", render=lambda r, refs: maintenance_status_label(r.get("status"))),
    ],
    fields=[
        Field("type", "Type de maintenance", "select", MAINTENANCE_TYPES),
        Field("title", "Titre", placeholder="ex: Mise à jour des serveurs"),
        Field("description", "Description", "textarea"),
        Field("startDate", "Date de début", "date"),
        Field("endDate", "Date de fin", "date"),
        Field("status", "Statut", "select", MAINTENANCE_STATUS),
        Field("notes", "Notes", "textarea"),
    ],
).register()
