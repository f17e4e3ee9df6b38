from flask import Blueprint, current_app, flash, redirect, render_template, url_for
from flask_login import current_user, login_required

from .api import ApiError
from .auth import page_required
from .constants import ALERT_STATUS, EQUIPMENT_STATUS, label, maintenance_status_label
from .roles import can_access_page, can_perform_action
from .state import current_state

bp = Blueprint("main", __name__)

STATS_PATH = "/api/dashboard/stats"
ALERTS_PATH = "/api/alerts"

# (page, endpoint, libellé) dans l'ordre du menu
NAV = (
    ("/", "main.index", "Tableau de bord"),
    ("/equipment", "equipment.list_view", "Équipements"),
    ("/employees", "employees.list_view", "Employés"),
    ("/planning", "planning.list_view", "Planning"),
    ("/users", "users.list_view", "Utilisateurs"),
    ("/tickets", "tickets.list_view", "Tickets"),
    ("/inventory", "inventory.list_view", "Inventaire"),
    ("/licenses", "licenses.list_view", "Licences"),
    ("/settings", "settings.index", "Paramètres"),
)

EMPTY_STATS = {
    "totalEquipment": 0,
    "openTickets": 0,
    "activeUsers": 0,
    "expiringLicenses": 0,
    "equipmentByStatus": [],
    "ticketsByDay": [],
    "recentActivities": [],
    "alerts": [],
    "upcomingMaintenances": [],
}


@bp.app_template_filter("yn")
def yn(value):
    return "Oui" if value else "Non"


def unread_alerts(client):
    try:
        alerts = client.query(ALERTS_PATH) or []
    except ApiError:
        return 0
    return sum(1 for a in alerts if a.get("status") == "nouvelle")


@bp.app_context_processor
def inject_console():
    if not current_user.is_authenticated:
        return {"nav": [], "theme": "light", "unread_count": 0}
    state = current_state()
    return {
        "nav": [(endpoint, text) for page, endpoint, text in NAV if can_access_page(current_user, page)],
        "can": lambda action: can_perform_action(current_user, action),
        "can_access": lambda page: can_access_page(current_user, page),
        "theme": state.theme if state is not None else "light",
        "unread_count": unread_alerts(state.client) if state is not None else 0,
    }


@bp.route("/")
@page_required("/")
def index():
    state = current_state()
    stats, load_error = dict(EMPTY_STATS), None
    try:
        stats.update(state.client.query(STATS_PATH) or {})
    except ApiError as e:
        load_error = e.message
    current_app.extensions["parcinfo.poller"].watch(state)
    by_status = [
        dict(row, label=label(EQUIPMENT_STATUS, row.get("status")))
        for row in stats.get("equipmentByStatus") or []
    ]
    upcoming = [
        dict(m, status_label=maintenance_status_label(m.get("status")))
        for m in stats.get("upcomingMaintenances") or []
    ]
    return render_template(
        "dashboard.html", stats=stats, by_status=by_status, upcoming=upcoming,
        load_error=load_error, refresh=current_app.config["POLL_INTERVAL_SECONDS"],
    )


@bp.route("/alerts")
@login_required
def alerts():
    rows, load_error = [], None
    try:
        rows = current_state().client.query(ALERTS_PATH) or []
    except ApiError as e:
        load_error = e.message
    rows = sorted(rows, key=lambda a: a.get("createdAt") or "", reverse=True)
    return render_template("alerts.html", alerts=rows, statuses=ALERT_STATUS, load_error=load_error)


@bp.route("/alerts/<alert_id>/read", methods=["POST"])
@login_required
def alert_read(alert_id):
    try:
        current_state().client.set_status(ALERTS_PATH, alert_id, {"status": "lue"})
    except ApiError as e:
        flash(f"Impossible de mettre à jour l'alerte: {e.message}", "error")
    return redirect(url_for("main.alerts"))


@bp.app_errorhandler(403)
def forbidden(e):
    return render_template("403.html"), 403
