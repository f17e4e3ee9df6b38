# Libellés affichés pour les valeurs énumérées de l'API

EQUIPMENT_TYPES = {
    "ordinateur": "Ordinateur",
    "serveur": "Serveur",
    "périphérique": "Périphérique",
}

EQUIPMENT_STATUS = {
    "en service": "En Service",
    "en maintenance": "En Maintenance",
    "hors service": "Hors Service",
}

TICKET_STATUS = {
    "ouvert": "Ouvert",
    "assigné": "Assigné",
    "en cours": "En Cours",
    "résolu": "Résolu",
    "clôturé": "Clôturé",
}

TICKET_PRIORITY = {
    "basse": "Basse",
    "moyenne": "Moyenne",
    "haute": "Haute",
}

INVENTORY_CONDITION = {
    "fonctionnel": "Fonctionnel",
    "défectueux": "Défectueux",
}

LICENSE_TYPES = (
    "Microsoft Office",
    "Windows",
    "Adobe Creative Suite",
    "Antivirus",
    "CAD Software",
    "Development Tools",
    "Database",
    "Other",
)

MAINTENANCE_TYPES = {
    "preventive": "Préventive",
    "corrective": "Corrective",
    "mise_a_jour": "Mise à jour",
}

# Orthographe de l'API = valeur canonique
MAINTENANCE_STATUS = {
    "planifie": "Planifié",
    "en_cours": "En cours",
    "termine": "Terminé",
    "annule": "Annulé",
}

MAINTENANCE_STATUS_ALIASES = {
    "planifié": "planifie",
    "en cours": "en_cours",
    "terminé": "termine",
    "annulé": "annule",
}

ALERT_STATUS = {
    "nouvelle": "Nouvelle",
    "en_cours": "En cours",
    "lue": "Lue",
}

EXPORT_TYPES = {
    "equipment": "Équipements",
    "employees": "Employés",
    "users": "Utilisateurs",
    "tickets": "Tickets",
    "inventory": "Inventaire",
    "licenses": "Licences",
}


def canonical_maintenance_status(value):
    if not value:
        return None
    value = str(value).strip().lower()
    if value in MAINTENANCE_STATUS:
        return value
    return MAINTENANCE_STATUS_ALIASES.get(value)


def label(table, value, default=None):
    if value is None:
        return default if default is not None else ""
    return table.get(value, default if default is not None else str(value))


def maintenance_status_label(value):
    return label(MAINTENANCE_STATUS, canonical_maintenance_status(value) or value)
