"""Écrans liste / création / édition / suppression communs à toutes les entités."""
import logging

from flask import flash, redirect, render_template, request, url_for
from flask_login import current_user

from .api import ApiError
from .auth import action_required, page_required
from .state import current_state
from .submission import submit

log = logging.getLogger(__name__)

# lectures agrégées à rafraîchir après toute mutation
DERIVED = ("/api/dashboard", "/api/alerts")


class Column:
    def __init__(self, label, key=None, render=None):
        self.label = label
        self.key = key
        self._render = render

    def value(self, row, refs):
        if self._render is not None:
            return self._render(row, refs)
        val = row.get(self.key)
        return "" if val is None else val


class Field:
    def __init__(self, name, label, kind="text", choices=None, placeholder="", help=None):
        self.name = name
        self.label = label
        self.kind = kind
        self._choices = choices
        self.placeholder = placeholder
        self.help = help

    def choices(self, lookups):
        if callable(self._choices):
            return list(self._choices(lookups))
        if isinstance(self._choices, dict):
            return list(self._choices.items())
        return [(c, c) for c in (self._choices or ())]


def load_lookups(client, resources):
    """Collections annexes (libellés, listes de choix). Un échec donne une liste vide."""
    out = {}
    for name, path in (resources or {}).items():
        try:
            out[name] = client.query(path) or []
        except ApiError as e:
            log.warning("Chargement de %s impossible: %s", path, e.message)
            out[name] = []
    return out


def index_by_id(rows):
    return {str(r.get("id")): r for r in rows or [] if isinstance(r, dict)}


class Screen:
    """Un écran CRUD branché sur une ressource de l'API.

    `noun` sert à nommer les actions (create_<noun>, edit_<noun>, delete_<noun>).
    """

    list_template = "entity_list.html"
    form_template = "entity_form.html"

    def __init__(self, bp, *, noun, resource, page, form, title, singular, columns, fields,
                 lookups=None, empty_message="Aucun élément", search_keys=(), detail=None):
        self.bp = bp
        self.noun = noun
        self.resource = resource
        self.page = page
        self.form = form
        self.title = title
        self.singular = singular
        self.columns = columns
        self.fields = fields
        self.lookups = lookups or {}
        self.empty_message = empty_message
        self.search_keys = search_keys
        # endpoint de la vue détail d'une ligne, s'il y en a une
        self.detail = detail

    # ---- hooks surchargeables ----

    def filter_rows(self, rows, args):
        q = (args.get("q") or "").strip().lower()
        if not q or not self.search_keys:
            return rows
        return [r for r in rows if any(q in str(r.get(k) or "").lower() for k in self.search_keys)]

    def list_context(self, rows, lookups):
        return {}

    def form_lookups(self, client):
        return load_lookups(client, self.lookups)

    # ---- vues ----

    def action(self, verb):
        return f"{verb}_{self.noun}"

    def endpoint(self, name):
        return f"{self.bp.name}.{name}"

    def render_list(self):
        client = current_state().client
        rows, load_error = [], None
        try:
            rows = client.query(self.resource) or []
        except ApiError as e:
            load_error = e.message
        lookups = load_lookups(client, self.lookups)
        refs = {name: index_by_id(items) for name, items in lookups.items()}
        shown = self.filter_rows(rows, request.args)
        return render_template(
            self.list_template, screen=self, rows=shown, total=len(rows),
            lookups=lookups, refs=refs, load_error=load_error, q=request.args.get("q", ""),
            **self.list_context(rows, lookups),
        )

    def render_form(self, entity=None, values=None, errors=None, status=200):
        client = current_state().client
        if values is None:
            values = self.form.from_entity(entity) if entity else self.form.defaults(current_user)
        return render_template(
            self.form_template, screen=self, entity=entity, values=values,
            errors=errors or {}, lookups=self.form_lookups(client),
        ), status

    def fetch(self, item_id):
        """Élément à éditer; None (avec message) s'il n'existe plus.

        Lu sur `GET {resource}/{id}`, puis dans la collection si l'API ne sert
        pas l'élément seul.
        """
        client = current_state().client
        try:
            entity = client.item(self.resource, item_id)
        except ApiError as e:
            log.debug("%s/%s indisponible (%s), repli sur la collection", self.resource, item_id, e.status)
        else:
            if entity:
                return entity
        try:
            rows = client.query(self.resource) or []
        except ApiError as e:
            flash(f"Chargement impossible: {e.message}", "error")
            return None
        entity = index_by_id(rows).get(str(item_id))
        if entity is None:
            flash(f"{self.singular} introuvable.", "error")
        return entity

    def save(self, entity=None):
        client = current_state().client
        result = submit(client, self.resource, self.form, request.form, existing=entity)
        if result.ok:
            self.invalidate_derived(client)
            flash(f"{self.singular} {'créé(e)' if result.created else 'modifié(e)'} avec succès.", "success")
            return redirect(url_for(self.endpoint("list_view")))
        if result.error:
            verb = "modifier" if entity else "créer"
            flash(f"Impossible de {verb}: {result.error}", "error")
        return self.render_form(entity, values=request.form.to_dict(), errors=result.errors, status=400)

    def invalidate_derived(self, client):
        for path in DERIVED:
            client.cache.invalidate(path)

    def remove(self, item_id):
        try:
            current_state().client.delete(self.resource, item_id)
        except ApiError as e:
            flash(f"Impossible de supprimer: {e.message}", "error")
        else:
            self.invalidate_derived(current_state().client)
            flash(f"{self.singular} supprimé(e).", "success")
        return redirect(url_for(self.endpoint("list_view")))

    def register(self):
        bp = self.bp

        @bp.route("/", strict_slashes=False, endpoint="list_view")
        @page_required(self.page)
        def list_view():
            return self.render_list()

        @bp.route("/new", methods=["GET", "POST"], endpoint="new_view")
        @page_required(self.page)
        @action_required(self.action("create"))
        def new_view():
            if request.method == "POST":
                return self.save()
            return self.render_form()

        @bp.route("/<item_id>/edit", methods=["GET", "POST"], endpoint="edit_view")
        @page_required(self.page)
        @action_required(self.action("edit"))
        def edit_view(item_id):
            entity = self.fetch(item_id)
            if entity is None:
                return redirect(url_for(self.endpoint("list_view")))
            if request.method == "POST":
                return self.save(entity)
            return self.render_form(entity)

        @bp.route("/<item_id>/delete", methods=["POST"], endpoint="delete_view")
        @page_required(self.page)
        @action_required(self.action("delete"))
        def delete_view(item_id):
            return self.remove(item_id)

        return self
