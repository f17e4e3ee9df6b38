from flask import Blueprint

from .crud import Column, Field, Screen
from .forms import EmployeeForm

bp = Blueprint("employees", __name__, template_folder="templates")

screen = Screen(
    bp,
    noun="employee",
    resource="/api/employees",
    page="/employees",
    form=EmployeeForm,
    title="Employés",
    singular="Employé",
    empty_message="Aucun employé enregistré",
    search_keys=("name", "email", "department", "position"),
    columns=[
        Column("Nom", "name"),
        Column("Email", "email"),
        Column("Département", "department"),
        Column("Poste", "position"),
    ],
    fields=[
        Field("name", "Nom complet", placeholder="ex: Jean Dupont"),
        Field("email", "Email", "email", placeholder="jean.dupont@entreprise.fr"),
        Field("department", "Département", placeholder="ex: Comptabilité"),
        Field("position", "Poste", placeholder="ex: Analyste"),
    ],
).register()
