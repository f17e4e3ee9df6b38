import logging
import os
from decimal import Decimal
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask
from flask_login import LoginManager
from pytz import timezone as _pytz_tz

# Extensions globales
login_manager = LoginManager()
scheduler = BackgroundScheduler()

log = logging.getLogger(__name__)

TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in TRUTHY


def create_app(test_config=None):
    app = Flask(__name__)

    # --- Config de base ---
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "devkey-change-me")
    app.config["API_BASE_URL"] = os.environ.get("API_BASE_URL", "http://localhost:3000")
    app.config["API_TIMEOUT"] = float(os.environ.get("API_TIMEOUT", "10"))
    app.config["API_TRANSPORT"] = None
    app.config["QUERY_STALE_SECONDS"] = int(os.environ.get("QUERY_STALE_SECONDS", "300"))
    app.config["POLL_INTERVAL_SECONDS"] = int(os.environ.get("POLL_INTERVAL_SECONDS", "30"))
    app.config["POLL_IDLE_SECONDS"] = int(os.environ.get("POLL_IDLE_SECONDS", "300"))
    app.config["SESSION_SWEEP_MINUTES"] = int(os.environ.get("SESSION_SWEEP_MINUTES", "10"))
    app.config["SCHEDULER_ENABLED"] = _env_flag("SCHEDULER_ENABLED", "true")
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")

    # --- TZ / UTF-8 ---
    app.config["TZ_NAME"] = os.environ.get("TZ_NAME", "Europe/Paris")
    app.config["NAIVE_AS"] = os.environ.get("NAIVE_AS", "UTC")
    app.config["JSON_AS_ASCII"] = False
    app.config.setdefault("MAX_CONTENT_LENGTH", 10 * 1024 * 1024)  # imports xlsx

    if test_config:
        app.config.update(test_config)
    app.config["APP_TZ"] = ZoneInfo(app.config["TZ_NAME"])

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # --- Extensions ---
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message = "Veuillez vous connecter pour accéder à cette page."
    login_manager.login_message_category = "error"
    # l'identité est revérifiée auprès de l'API à chaque requête
    login_manager.session_protection = None

    from .polling import Poller
    from .state import SessionRegistry, persist_cookies

    registry = SessionRegistry(
        app.config["API_BASE_URL"],
        stale_seconds=app.config["QUERY_STALE_SECONDS"],
        timeout=app.config["API_TIMEOUT"],
        transport=app.config["API_TRANSPORT"],
    )
    poller = Poller(
        scheduler,
        interval=app.config["POLL_INTERVAL_SECONDS"],
        idle_timeout=app.config["POLL_IDLE_SECONDS"],
        enabled=app.config["SCHEDULER_ENABLED"],
    )
    registry.on_close(poller.stop)
    app.extensions["parcinfo"] = registry
    app.extensions["parcinfo.poller"] = poller

    # --- Blueprints ---
    from .auth import bp as auth_bp
    from .employees import bp as employees_bp
    from .equipment import bp as equipment_bp
    from .inventory import bp as inventory_bp
    from .licenses import bp as licenses_bp
    from .planning import bp as planning_bp
    from .routes import bp as main_bp
    from .settings import bp as settings_bp
    from .tickets import bp as tickets_bp
    from .users import bp as users_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(equipment_bp, url_prefix="/equipment")
    app.register_blueprint(employees_bp, url_prefix="/employees")
    app.register_blueprint(users_bp, url_prefix="/users")
    app.register_blueprint(tickets_bp, url_prefix="/tickets")
    app.register_blueprint(inventory_bp, url_prefix="/inventory")
    app.register_blueprint(licenses_bp, url_prefix="/licenses")
    app.register_blueprint(planning_bp, url_prefix="/planning")
    app.register_blueprint(settings_bp)

    # --- Filtres Jinja ---
    from .time_helpers import parse_api_datetime, to_local

    def _fmt_local(value, fmt="%d/%m/%Y %H:%M"):
        dt = parse_api_datetime(value)
        if not dt:
            return ""
        return to_local(dt).strftime(fmt)

    def _date_fr(value):
        return _fmt_local(value, "%d/%m/%Y")

    def _money(cents):
        if cents is None or cents == "":
            return "—"
        amount = Decimal(cents) / 100
        return f"{amount:,.2f} €".replace(",", " ").replace(".", ",")

    def _euros(amount):
        return f"{Decimal(amount):,.2f} €".replace(",", " ").replace(".", ",")

    app.jinja_env.filters["localtime"] = _fmt_local
    app.jinja_env.filters["date_fr"] = _date_fr
    app.jinja_env.filters["money"] = _money
    app.jinja_env.filters["euros"] = _euros

    # --- Forcer UTF-8 en HTML, recopier les cookies de l'API ---
    @app.after_request
    def _force_utf8(resp):
        if resp.mimetype in ("text/html", "application/xhtml+xml"):
            resp.headers["Content-Type"] = "text/html; charset=utf-8"
        return resp

    app.after_request(persist_cookies)

    # --- Scheduler avec TZ locale ---
    if not scheduler.running:
        scheduler.configure(timezone=_pytz_tz(app.config["TZ_NAME"]))

    sweep_minutes = app.config["SESSION_SWEEP_MINUTES"]

    def sweep_sessions():
        registry.sweep(app.config["POLL_IDLE_SECONDS"])

    should_start = (not app.debug) or (os.environ.get("WERKZEUG_RUN_MAIN") in ("true", "True", "1"))
    if app.config["SCHEDULER_ENABLED"] and should_start:
        scheduler.add_job(
            sweep_sessions, "interval",
            minutes=sweep_minutes, id="sweep_sessions", replace_existing=True,
        )
        if not scheduler.running:
            scheduler.start()
            log.info("Scheduler démarré (sweep=%s min, polling=%ss)",
                     sweep_minutes, app.config["POLL_INTERVAL_SECONDS"])

    return app
