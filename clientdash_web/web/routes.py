## routes.py
from __future__ import annotations

from io import BytesIO

from flask import Blueprint, abort, current_app, redirect, render_template, request, send_file, url_for

from clientdash_web.domain.errors import (
    ClientNotFoundError,
    ClientValidationError,
    ExportError,
    ExportInProgressError,
    MalformedAnalysisError,
    RegionNotFoundError,
    SettingsValidationError,
)
from clientdash_web.domain.models import CLIENT_STATUSES
from clientdash_web.services.client_service import parse_client_form
from clientdash_web.services.user_settings import LANGUAGES, UserSettings


def _form_model(form=None, **extra) -> dict:
    model = dict(form=dict(form or {}), statuses=CLIENT_STATUSES, error=None)
    model.update(extra)
    return model


def _client_form_values(client) -> dict:
    return {
        k: ("" if v is None else v)
        for k, v in vars(client).items()
        if k not in {"id", "created_at", "updated_at"}
    }


def _kept_key(submitted: str, current: str, masked: str) -> str:
    # The settings page renders masked keys; an unchanged masked value keeps the stored key.
    submitted = (submitted or "").strip()
    return current if submitted == masked else submitted


def create_blueprint(client_service, export_service, settings_store) -> Blueprint:
    bp = Blueprint("web", __name__)

    def load_client_or_404(client_id: str):
        try:
            return client_service.get_client(client_id)
        except ClientNotFoundError:
            abort(404)

    def render_detail(client, error=None, code=200):
        analyses = []
        analyses_error = None
        try:
            analyses = client_service.client_analyses(client.id)
        except MalformedAnalysisError as e:
            current_app.logger.warning("Skipping analyses for client %s: %s", client.id, e)
            analyses_error = "Saved analyses could not be read."

        return render_template(
            "client_detail.html",
            client=client,
            analyses=analyses,
            analyses_error=analyses_error,
            region_id=export_service.region_id,
            print_mode=request.args.get("print") == "1",
            error=error,
        ), code

    @bp.get("/")
    def index():
        stats = client_service.dashboard_stats()
        clients = client_service.list_clients()
        return render_template("index.html", stats=stats, clients=clients)

    @bp.get("/clients")
    def clients_index():
        q = (request.args.get("q") or "").strip().lower()
        clients = client_service.list_clients()
        if q:
            clients = [c for c in clients if q in c.name.lower() or q in (c.industry or "").lower()]
        return render_template("clients.html", clients=clients, q=q)

    @bp.route("/clients/new", methods=["GET", "POST"])
    def client_new():
        if request.method == "GET":
            return render_template("client_form.html", **_form_model(mode="new"))

        try:
            draft = parse_client_form(request.form)
        except ClientValidationError as e:
            return render_template("client_form.html", **_form_model(request.form, mode="new", error=str(e))), 400

        client = client_service.create_client(draft)
        return redirect(url_for("web.client_detail", client_id=client.id))

    @bp.get("/clients/<client_id>")
    def client_detail(client_id: str):
        client = load_client_or_404(client_id)
        return render_detail(client)

    @bp.route("/clients/<client_id>/edit", methods=["GET", "POST"])
    def client_edit(client_id: str):
        client = load_client_or_404(client_id)
        if request.method == "GET":
            return render_template(
                "client_form.html",
                **_form_model(_client_form_values(client), mode="edit", client=client),
            )

        try:
            draft = parse_client_form(request.form)
            client_service.update_client(client_id, draft)
        except ClientValidationError as e:
            return render_template(
                "client_form.html",
                **_form_model(request.form, mode="edit", client=client, error=str(e)),
            ), 400
        except ClientNotFoundError:
            abort(404)

        return redirect(url_for("web.client_detail", client_id=client_id))

    @bp.post("/clients/<client_id>/delete")
    def client_delete(client_id: str):
        try:
            client_service.delete_client(client_id)
        except ClientNotFoundError:
            abort(404)
        return redirect(url_for("web.clients_index"))

    @bp.post("/clients/<client_id>/export")
    def client_export(client_id: str):
        client = load_client_or_404(client_id)

        try:
            result = export_service.export_client_report(client)
        except ExportInProgressError as e:
            return render_detail(client, error=str(e), code=409)
        except RegionNotFoundError as e:
            current_app.logger.error("Export of client %s failed: %s", client_id, e)
            return render_detail(client, error=str(e), code=404)
        except ExportError as e:
            current_app.logger.exception("Export of client %s failed", client_id)
            return render_detail(client, error=f"PDF export failed: {e}", code=500)

        current_app.logger.info("Export %s pages=%d bytes=%d", result.filename, result.page_count, len(result.content))
        return send_file(
            BytesIO(result.content),
            mimetype=result.media_type,
            as_attachment=True,
            download_name=result.filename,
        )

    @bp.route("/settings", methods=["GET", "POST"])
    def settings():
        current = settings_store.load()
        masked = current.masked()

        if request.method == "GET":
            return render_template("settings.html", settings=masked, languages=LANGUAGES, error=None, saved=False)

        submitted = UserSettings(
            perplexity_api_key=_kept_key(
                request.form.get("perplexity_api_key"), current.perplexity_api_key, masked.perplexity_api_key
            ),
            openai_api_key=_kept_key(request.form.get("openai_api_key"), current.openai_api_key, masked.openai_api_key),
            language=(request.form.get("language") or "").strip().lower(),
        )

        try:
            settings_store.save(submitted)
        except SettingsValidationError as e:
            return render_template(
                "settings.html", settings=masked, languages=LANGUAGES, error=str(e), saved=False
            ), 400

        return render_template("settings.html", settings=submitted.masked(), languages=LANGUAGES, error=None, saved=True)

    return bp
