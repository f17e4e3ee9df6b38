import io
import logging
import zipfile
from datetime import datetime

from flask import Blueprint, abort, flash, redirect, render_template, request, send_file, session, url_for
from flask_login import login_required
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .api import ApiError
from .auth import page_required
from .constants import EXPORT_TYPES
from .state import THEMES, current_state

log = logging.getLogger(__name__)

bp = Blueprint("settings", __name__, template_folder="templates")

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ImportRejected(Exception):
    pass


def _check_type(kind):
    if kind not in EXPORT_TYPES:
        abort(404)
    return kind


def count_data_rows(content):
    """Lignes non vides après l'en-tête de la première feuille.

    Lève ImportRejected si le classeur est illisible.
    """
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise ImportRejected("Fichier illisible: un classeur .xlsx est attendu") from e
    try:
        ws = wb.active
        rows = 0
        for i, row in enumerate(ws.iter_rows(values_only=True)):
            if i == 0:
                continue
            if any(v not in (None, "") for v in row):
                rows += 1
        return rows
    finally:
        wb.close()


def preflight(file_storage):
    if file_storage is None or not file_storage.filename:
        raise ImportRejected("Veuillez sélectionner un fichier")
    if not file_storage.filename.lower().endswith(".xlsx"):
        raise ImportRejected("Seuls les fichiers .xlsx sont acceptés")
    content = file_storage.read()
    if not count_data_rows(content):
        raise ImportRejected("Le fichier ne contient aucune ligne de données")
    return content


@bp.route("/settings")
@page_required("/settings")
def index():
    return render_template("settings.html", types=EXPORT_TYPES)


def _download(path, fallback_name):
    try:
        dl = current_state().client.download(path)
    except ApiError as e:
        flash(f"Impossible d'exporter les données: {e.message}", "error")
        return redirect(url_for("settings.index"))
    return send_file(
        io.BytesIO(dl.content), as_attachment=True,
        download_name=dl.filename or fallback_name,
        mimetype=dl.content_type or XLSX_MIME,
    )


@bp.route("/settings/export/<kind>")
@page_required("/settings")
def export(kind):
    _check_type(kind)
    return _download(f"/api/settings/export/{kind}",
                     f"{kind}-export-{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx")


@bp.route("/settings/template/<kind>")
@page_required("/settings")
def template(kind):
    _check_type(kind)
    return _download(f"/api/settings/template/{kind}", f"{kind}-modele.xlsx")


@bp.route("/settings/import", methods=["POST"])
@page_required("/settings")
def import_data():
    kind = _check_type(request.form.get("type") or "")
    upload = request.files.get("file")
    try:
        content = preflight(upload)
    except ImportRejected as e:
        flash(str(e), "error")
        return redirect(url_for("settings.index"))
    try:
        current_state().client.upload(
            "/api/settings/import",
            files={"file": (upload.filename, content, XLSX_MIME)},
            data={"type": kind},
            invalidate=f"/api/{kind}",
        )
    except ApiError as e:
        flash(f"Impossible d'importer les données: {e.message}", "error")
    else:
        log.info("Import %s: %s", kind, upload.filename)
        flash("Vos données ont été importées avec succès", "success")
    return redirect(url_for("settings.index"))


@bp.route("/settings/theme", methods=["POST"])
@login_required
def toggle_theme():
    state = current_state()
    current = state.theme if state is not None else session.get("theme", "light")
    theme = request.form.get("theme")
    if theme not in THEMES:
        theme = "dark" if current == "light" else "light"
    if state is not None:
        state.theme = theme
    session["theme"] = theme
    return redirect(request.referrer or url_for("main.index"))
