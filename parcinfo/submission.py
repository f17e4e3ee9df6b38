import logging
from dataclasses import dataclass, field
from typing import Optional

from .api import ApiError
from .forms import validate_form

log = logging.getLogger(__name__)


@dataclass
class Submission:
    ok: bool
    entity: Optional[dict] = None
    errors: dict = field(default_factory=dict)
    error: Optional[str] = None
    created: bool = False


def submit(client, resource, form_cls, raw, existing=None, on_success=None, context=None):
    """Valide `raw`, puis POST (création) ou PUT complet (édition) sur `resource`.

    Aucune requête n'est envoyée si la validation échoue. En cas d'erreur API,
    la soumission porte le message et l'appelant ré-affiche le formulaire tel
    qu'il a été saisi.
    """
    editing = existing is not None
    ctx = dict(context or {}, editing=editing)
    form, errors = validate_form(form_cls, raw, context=ctx)
    if errors:
        return Submission(False, errors=errors)

    payload = form.to_payload()
    try:
        if editing:
            entity = client.update(resource, existing["id"], payload)
        else:
            entity = client.create(resource, payload)
    except ApiError as e:
        log.warning("Échec %s %s: %s", "PUT" if editing else "POST", resource, e.message)
        return Submission(False, error=e.message)

    if on_success is not None:
        on_success(entity)
    return Submission(True, entity=entity, created=not editing)
