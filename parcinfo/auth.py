import logging
from functools import wraps

from flask import Blueprint, abort, flash, redirect, render_template, request, session, url_for
from flask_login import UserMixin, current_user, login_required

from . import login_manager
from .api import ApiError
from .forms import LoginForm, PasswordForm, ProfileForm, RegisterForm, validate_form
from .roles import Role, can_access_page, can_perform_action, role_label
from .state import current_state, end_session, registry, start_session

log = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, template_folder="templates")


class CurrentUser(UserMixin):
    """Utilisateur renvoyé par /api/auth/user."""

    def __init__(self, data):
        self.data = data
        self.id = str(data.get("id", ""))
        self.email = data.get("email") or ""
        self.first_name = data.get("firstName")
        self.last_name = data.get("lastName")
        self.role = Role.parse(data.get("role"))

    @property
    def display_name(self):
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.email.split("@")[0] or "Utilisateur"

    @property
    def initials(self):
        if self.first_name and self.last_name:
            return (self.first_name[0] + self.last_name[0]).upper()
        return (self.email[:2] or "U").upper()

    @property
    def role_label(self):
        return role_label(self.role)

    def get_id(self):
        return self.id


def fetch_current_user(client, on_unauthorized=None):
    """200 -> utilisateur, 401 -> None, erreur réseau ou autre -> None."""
    try:
        data = client.request("GET", "/api/auth/user").json()
    except ApiError as e:
        if e.unauthorized:
            if on_unauthorized is not None:
                on_unauthorized()
        else:
            log.warning("Vérification de session impossible: %s", e.message)
        return None
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("user"), dict):
        data = data["user"]
    if not isinstance(data, dict) or not data.get("id"):
        return None
    return CurrentUser(data)


@login_manager.request_loader
def load_user_from_api(req):
    state = current_state()
    if state is None:
        return None

    def collapse():
        # session API expirée: on replie la session locale
        log.info("Session %s expirée côté API", state.sid)
        end_session()

    return fetch_current_user(state.client, on_unauthorized=collapse)


# ---- garde-fous ----

def page_required(page):
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapper(*args, **kwargs):
            if not can_access_page(current_user, page):
                flash("Vous n'avez pas accès à cette page.", "error")
                return redirect(url_for("main.index"))
            return view(*args, **kwargs)
        return wrapper
    return decorator


def action_required(action):
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapper(*args, **kwargs):
            if not can_perform_action(current_user, action):
                abort(403)
            return view(*args, **kwargs)
        return wrapper
    return decorator


# ---- routes ----

@bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("main.index"))
    values, errors = {}, {}
    if request.method == "POST":
        values = request.form.to_dict()
        form, errors = validate_form(LoginForm, request.form)
        if form is not None:
            state = registry().open(theme=session.get("theme", "light"))
            try:
                state.client.post("/api/auth/login", form.to_payload())
            except ApiError as e:
                registry().close(state.sid)
                flash(e.message if e.status != 401 else "Identifiants invalides.", "error")
            else:
                if fetch_current_user(state.client) is None:
                    registry().close(state.sid)
                    flash("Connexion refusée par le serveur.", "error")
                else:
                    start_session(state)
                    log.info("Connexion de %s", form.email)
                    return redirect(url_for("main.index"))
    return render_template("login.html", values=values, errors=errors)


@bp.route("/register", methods=["GET", "POST"])
def register():
    if current_user.is_authenticated:
        return redirect(url_for("main.index"))
    values, errors = {}, {}
    if request.method == "POST":
        values = request.form.to_dict()
        form, errors = validate_form(RegisterForm, request.form)
        if form is not None:
            state = registry().open(theme=session.get("theme", "light"))
            try:
                state.client.post("/api/auth/register", form.to_payload())
            except ApiError as e:
                registry().close(state.sid)
                flash(e.message, "error")
            else:
                if fetch_current_user(state.client) is None:
                    registry().close(state.sid)
                    flash("Compte créé, vous pouvez vous connecter.", "success")
                    return redirect(url_for("auth.login"))
                start_session(state)
                flash("Compte créé.", "success")
                return redirect(url_for("main.index"))
    return render_template("register.html", values=values, errors=errors)


@bp.route("/logout", methods=["GET", "POST"])
@login_required
def logout():
    state = current_state()
    if state is not None:
        try:
            state.client.request("POST", "/api/auth/logout")
        except ApiError as e:
            log.warning("Déconnexion API en échec: %s", e.message)
    end_session()
    return redirect(url_for("auth.login"))


@bp.route("/profile", methods=["GET", "POST"])
@login_required
def profile():
    values = ProfileForm.from_entity(current_user.data)
    errors = {}
    if request.method == "POST":
        values = request.form.to_dict()
        form, errors = validate_form(ProfileForm, request.form)
        if form is not None:
            try:
                current_state().client.put("/api/auth/profile", form.to_payload(), invalidate="/api/users")
            except ApiError as e:
                flash(e.message, "error")
            else:
                flash("Vos informations ont été mises à jour.", "success")
                return redirect(url_for("auth.profile"))
    return render_template("profile.html", values=values, errors=errors, pwd_errors={})


@bp.route("/change-password", methods=["POST"])
@login_required
def change_password():
    form, errors = validate_form(PasswordForm, request.form)
    if form is None:
        values = ProfileForm.from_entity(current_user.data)
        return render_template("profile.html", values=values, errors={}, pwd_errors=errors), 400
    try:
        current_state().client.put("/api/auth/change-password", form.to_payload())
    except ApiError as e:
        flash(e.message, "error")
    else:
        flash("Mot de passe modifié.", "success")
    return redirect(url_for("auth.profile"))


@bp.route("/logout-other-sessions", methods=["POST"])
@login_required
def logout_other_sessions():
    try:
        current_state().client.post("/api/auth/logout-other-sessions")
    except ApiError as e:
        flash(e.message, "error")
    else:
        flash("Les autres sessions ont été fermées.", "success")
    return redirect(url_for("auth.profile"))
