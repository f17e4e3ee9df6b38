# parcinfo/time_helpers.py
import math
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo
from flask import current_app

UTC = timezone.utc


def app_tz():
    return current_app.config.get("APP_TZ", ZoneInfo("Europe/Paris"))


def now_local():
    return datetime.now(app_tz())


def to_local(dt):
    if dt is None:
        return None
    tz = app_tz()
    naive_as = (current_app.config.get("NAIVE_AS") or "UTC").upper()
    if dt.tzinfo is None:
        # l'API renvoie de l'UTC; un datetime naïf est traité comme tel par défaut
        if naive_as == "UTC":
            dt = dt.replace(tzinfo=UTC)
        else:
            dt = dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def parse_api_datetime(value):
    """ISO 8601 de l'API ("2024-05-01T08:00:00.000Z", "2024-05-01") -> datetime aware."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, datetime.min.time())
    else:
        s = str(value).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def parse_form_date(value):
    """Champ <input type=date> ("YYYY-MM-DD", éventuellement avec heure) -> date."""
    if not value:
        return None
    s = str(value).strip()
    try:
        return datetime.strptime(s[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_form_datetime(value):
    """Champ date ou datetime-local -> datetime naïf (minuit si pas d'heure)."""
    if not value:
        return None
    s = str(value).strip()
    for fmt in ("%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            pass
    return None


def to_api_datetime(d):
    """date -> "YYYY-MM-DDT00:00:00.000Z", le format que l'API attend pour les dates."""
    if d is None:
        return None
    if isinstance(d, datetime):
        dt = d if d.tzinfo else d.replace(tzinfo=UTC)
    else:
        dt = datetime.combine(d, datetime.min.time(), tzinfo=UTC)
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def form_date(value):
    """Valeur d'API -> "YYYY-MM-DD" pour pré-remplir un champ date."""
    dt = parse_api_datetime(value)
    return dt.date().isoformat() if dt else ""


def days_until(target, now):
    """Jours restants, arrondis au supérieur (négatif si dépassé)."""
    return math.ceil((target - now).total_seconds() / 86400)
