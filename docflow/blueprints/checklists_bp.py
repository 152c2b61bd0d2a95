"""
Checklist endpoints — item/field checklist and per-file review.

Checklist instance:
    POST   /api/v1/checklists                               {project_id, template_id} (201)
    GET    /api/v1/checklists/<id>
    GET    /api/v1/checklists/<id>/completeness
    POST   /api/v1/checklists/<id>/items/<item_id>          {value}
    POST   /api/v1/checklists/<id>/items/<item_id>/files    {artifact, comment?} (201)
    POST   /api/v1/checklists/<id>/submit-for-review
    POST   /api/v1/checklists/<id>/verify                   {items: [{item_id, verified_status, comment?}], comments?}
    POST   /api/v1/checklists/<id>/close                    finalize; locks every file
    POST   /api/v1/checklists/<id>/revise                   new draft version (201)

Checklist file:
    GET    /api/v1/files/<id>
    POST   /api/v1/files/<id>/submit          {version?}
    POST   /api/v1/files/<id>/under-review    {version?}
    POST   /api/v1/files/<id>/send-back       {remarks, version?}
    POST   /api/v1/files/<id>/verify          {version?}
    POST   /api/v1/files/<id>/resubmit        {artifact, comment?} (201)
    GET    /api/v1/files/<id>/history

``version`` is the file version the caller last saw; a mismatch is a stale
decision (409 ERR_STALE_SUBMISSION).
"""

from flask import Blueprint, jsonify

from docflow.blueprints import artifact_from, json_body
from docflow.middleware.jwt_auth import current_actor, require_actor
from docflow.services import checklist_service
from docflow.utils.errors import E, api_error

checklists_bp = Blueprint("checklists", __name__, url_prefix="/api/v1")


# ── Instance ─────────────────────────────────────────────────────────────────


@checklists_bp.route("/checklists", methods=["POST"])
@require_actor
def create_checklist():
    data = json_body()
    if data.get("project_id") is None:
        return api_error(E.VALIDATION_REQUIRED, "project_id is required")
    if not data.get("template_id"):
        return api_error(E.VALIDATION_REQUIRED, "template_id is required")
    result = checklist_service.create_checklist(data["project_id"], data["template_id"], current_actor())
    return jsonify(result), 201


@checklists_bp.route("/checklists/<int:checklist_id>", methods=["GET"])
@require_actor
def get_checklist(checklist_id: int):
    return jsonify(checklist_service.get_checklist(checklist_id))


@checklists_bp.route("/checklists/<int:checklist_id>/completeness", methods=["GET"])
@require_actor
def completeness(checklist_id: int):
    return jsonify(checklist_service.completeness(checklist_id))


@checklists_bp.route("/checklists/<int:checklist_id>/items/<int:item_id>", methods=["POST"])
@require_actor
def update_item(checklist_id: int, item_id: int):
    data = json_body()
    if "value" not in data:
        return api_error(E.VALIDATION_REQUIRED, "value is required")
    return jsonify(checklist_service.update_item(checklist_id, item_id, data["value"], current_actor()))


@checklists_bp.route("/checklists/<int:checklist_id>/items/<int:item_id>/files", methods=["POST"])
@require_actor
def upload_file(checklist_id: int, item_id: int):
    data = json_body()
    artifact = artifact_from(data)
    if artifact is None:
        return api_error(E.VALIDATION_REQUIRED, "artifact is required")
    result = checklist_service.upload_file(
        checklist_id, item_id, artifact, current_actor(), comment=data.get("comment"),
    )
    return jsonify(result), 201


@checklists_bp.route("/checklists/<int:checklist_id>/submit-for-review", methods=["POST"])
@require_actor
def submit_for_review(checklist_id: int):
    return jsonify(checklist_service.submit_for_review(checklist_id, current_actor()))


@checklists_bp.route("/checklists/<int:checklist_id>/verify", methods=["POST"])
@require_actor
def verify(checklist_id: int):
    data = json_body()
    result = checklist_service.verify(
        checklist_id, current_actor(), items=data.get("items"), comments=data.get("comments"),
    )
    return jsonify(result)


@checklists_bp.route("/checklists/<int:checklist_id>/close", methods=["POST"])
@require_actor
def close(checklist_id: int):
    return jsonify(checklist_service.finalize(checklist_id, current_actor()))


@checklists_bp.route("/checklists/<int:checklist_id>/revise", methods=["POST"])
@require_actor
def revise(checklist_id: int):
    return jsonify(checklist_service.revise(checklist_id, current_actor())), 201


# ── Files ────────────────────────────────────────────────────────────────────


@checklists_bp.route("/files/<int:file_id>", methods=["GET"])
@require_actor
def get_file(file_id: int):
    return jsonify(checklist_service.get_file(file_id))


@checklists_bp.route("/files/<int:file_id>/submit", methods=["POST"])
@require_actor
def submit_file(file_id: int):
    version = json_body().get("version")
    return jsonify(checklist_service.submit_file(file_id, current_actor(), version=version))


@checklists_bp.route("/files/<int:file_id>/under-review", methods=["POST"])
@require_actor
def start_file_review(file_id: int):
    version = json_body().get("version")
    return jsonify(checklist_service.start_file_review(file_id, current_actor(), version=version))


@checklists_bp.route("/files/<int:file_id>/send-back", methods=["POST"])
@require_actor
def send_back_file(file_id: int):
    data = json_body()
    result = checklist_service.send_back_file(
        file_id, current_actor(), data.get("remarks"), version=data.get("version"),
    )
    return jsonify(result)


@checklists_bp.route("/files/<int:file_id>/verify", methods=["POST"])
@require_actor
def verify_file(file_id: int):
    version = json_body().get("version")
    return jsonify(checklist_service.verify_file(file_id, current_actor(), version=version))


@checklists_bp.route("/files/<int:file_id>/resubmit", methods=["POST"])
@require_actor
def resubmit_file(file_id: int):
    data = json_body()
    artifact = artifact_from(data)
    if artifact is None:
        return api_error(E.VALIDATION_REQUIRED, "artifact is required")
    result = checklist_service.resubmit_file(file_id, artifact, current_actor(), comment=data.get("comment"))
    return jsonify(result), 201


@checklists_bp.route("/files/<int:file_id>/history", methods=["GET"])
@require_actor
def file_history(file_id: int):
    return jsonify(checklist_service.get_file_history(file_id))
