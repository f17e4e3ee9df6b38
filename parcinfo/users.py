from flask import Blueprint

from .crud import Column, Field, Screen
from .forms import UserForm
from .roles import ROLE_LABELS, role_label

bp = Blueprint("users", __name__, template_folder="templates")


def full_name(row):
    names = [row.get("firstName"), row.get("lastName")]
    return " ".join(n for n in names if n)


screen = Screen(
    bp,
    noun="user",
    resource="/api/users",
    page="/users",
    form=UserForm,
    title="Gestion des Utilisateurs",
    singular="Utilisateur",
    empty_message="Aucun utilisateur",
    search_keys=("email", "firstName", "lastName", "role"),
    columns=[
        Column("Nom", render=lambda r, refs: full_name(r) or "—"),
        Column("Email", "email"),
        Column("Rôle", render=lambda r, refs: role_label(r.get("role"))),
        Column("Actif", render=lambda r, refs: "Oui" if r.get("isActive", True) else "Non"),
    ],
    fields=[
        Field("email", "Email", "email"),
        Field("firstName", "Prénom"),
        Field("lastName", "Nom"),
        Field("role", "Rôle", "select", {r.value: lbl for r, lbl in ROLE_LABELS.items()}),
        Field("isActive", "Compte actif", "checkbox"),
        Field("password", "Mot de passe", "password",
              help="Au moins 6 caractères. Laisser vide pour conserver le mot de passe actuel."),
    ],
).register()
