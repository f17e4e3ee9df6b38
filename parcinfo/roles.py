import enum


class Role(str, enum.Enum):
    ADMIN = "admin"
    TECHNICIEN = "technicien"
    UTILISATEUR = "utilisateur"

    @classmethod
    def parse(cls, value):
        """Role correspondant à `value`, ou None si inconnu."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except (ValueError, TypeError):
            return None


ROLE_LABELS = {
    Role.ADMIN: "Administrateur",
    Role.TECHNICIEN: "Technicien",
    Role.UTILISATEUR: "Utilisateur",
}

# Pages ouvertes au rôle utilisateur
USER_PAGES = frozenset({"/", "/employees", "/equipment", "/tickets"})
# Gestion des comptes réservée à l'admin
TECHNICIEN_DENIED_ACTIONS = frozenset({"delete_user", "create_user", "edit_user"})
USER_ACTIONS = frozenset({"create_ticket", "view"})


def _role_of(subject):
    if subject is None:
        return None
    if isinstance(subject, (Role, str)):
        return Role.parse(subject)
    return Role.parse(getattr(subject, "role", None))


def role_label(subject):
    role = _role_of(subject)
    return ROLE_LABELS.get(role, "Inconnu")


def has_access(subject, allowed_roles):
    role = _role_of(subject)
    if role is None:
        return False
    try:
        return any(Role.parse(r) is role for r in allowed_roles)
    except TypeError:
        return False


def can_access_page(subject, page):
    role = _role_of(subject)
    if role is Role.ADMIN or role is Role.TECHNICIEN:
        return True
    if role is Role.UTILISATEUR:
        return isinstance(page, str) and page in USER_PAGES
    return False


def can_perform_action(subject, action):
    role = _role_of(subject)
    if role is Role.ADMIN:
        return True
    if role is Role.TECHNICIEN:
        return isinstance(action, str) and action not in TECHNICIEN_DENIED_ACTIONS
    if role is Role.UTILISATEUR:
        return isinstance(action, str) and action in USER_ACTIONS
    return False
