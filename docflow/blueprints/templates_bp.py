"""
Template catalogue endpoints.

Endpoints:
    POST   /api/v1/templates                     publish a template (201)
    GET    /api/v1/templates                     ?include_superseded=1&category=
    GET    /api/v1/templates/<id>
    POST   /api/v1/templates/<id>/supersede      publish a replacement (201)

    POST   /api/v1/checklist-templates           define a checklist template (201)
    GET    /api/v1/checklist-templates/<id>
"""

from flask import Blueprint, jsonify, request

from docflow.blueprints import json_body
from docflow.middleware.jwt_auth import current_actor, require_actor
from docflow.services import checklist_service, template_service
from docflow.utils.errors import E, api_error

templates_bp = Blueprint("templates", __name__, url_prefix="/api/v1")


# ── Template files ───────────────────────────────────────────────────────────


@templates_bp.route("/templates", methods=["POST"])
@require_actor
def create_template():
    data = json_body()
    if not (data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    return jsonify(template_service.create_template(data, current_actor())), 201


@templates_bp.route("/templates", methods=["GET"])
@require_actor
def list_templates():
    include = request.args.get("include_superseded", "").lower() in ("1", "true", "yes")
    return jsonify(template_service.list_templates(
        include_superseded=include,
        category=request.args.get("category"),
    ))


@templates_bp.route("/templates/<int:template_id>", methods=["GET"])
@require_actor
def get_template(template_id: int):
    return jsonify(template_service.get_template(template_id))


@templates_bp.route("/templates/<int:template_id>/supersede", methods=["POST"])
@require_actor
def supersede_template(template_id: int):
    result = template_service.supersede_template(template_id, json_body(), current_actor())
    return jsonify(result), 201


# ── Checklist templates ──────────────────────────────────────────────────────


@templates_bp.route("/checklist-templates", methods=["POST"])
@require_actor
def create_checklist_template():
    data = json_body()
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    return jsonify(checklist_service.create_template(data, current_actor())), 201


@templates_bp.route("/checklist-templates/<int:template_id>", methods=["GET"])
@require_actor
def get_checklist_template(template_id: int):
    return jsonify(checklist_service.get_template(template_id))
