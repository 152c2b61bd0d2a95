"""
Assignment & submission endpoints — template assignment review surface.

Endpoints:
    POST   /api/v1/assignments                   {template_file_id, project_id, assignee_id?}
    GET    /api/v1/assignments/<id>
    POST   /api/v1/assignments/<id>/submit       upload a new version (201)
           Body: {artifact: {...} | file_path..., comment?, submission_source?}
    GET    /api/v1/assignments/<id>/history      versions, newest first
    POST   /api/v1/submissions/<id>/review       {action: approve|reject, remarks?}
    GET    /api/v1/submissions/<id>/download     artifact reference (disabled once verified)

    GET    /api/v1/projects/<pid>/assignments
    GET    /api/v1/projects/<pid>/history
"""

from flask import Blueprint, jsonify

from docflow.blueprints import artifact_from, json_body
from docflow.middleware.jwt_auth import current_actor, require_actor
from docflow.services import assignment_service
from docflow.utils.errors import E, api_error

assignments_bp = Blueprint("assignments", __name__, url_prefix="/api/v1")


@assignments_bp.route("/assignments", methods=["POST"])
@require_actor
def assign_template():
    data = json_body()
    template_file_id = data.get("template_file_id")
    if not template_file_id:
        return api_error(E.VALIDATION_REQUIRED, "template_file_id is required")
    if data.get("project_id") is None:
        return api_error(E.VALIDATION_REQUIRED, "project_id is required")

    result = assignment_service.assign_template(
        template_file_id, data["project_id"], current_actor(),
        assignee_id=data.get("assignee_id"),
    )
    return jsonify(result), 201


@assignments_bp.route("/assignments/<int:assignment_id>", methods=["GET"])
@require_actor
def get_assignment(assignment_id: int):
    return jsonify(assignment_service.get_assignment(assignment_id))


@assignments_bp.route("/assignments/<int:assignment_id>/submit", methods=["POST"])
@require_actor
def submit(assignment_id: int):
    data = json_body()
    artifact = artifact_from(data)
    if artifact is None:
        return api_error(E.VALIDATION_REQUIRED, "artifact is required")

    result = assignment_service.upload(
        assignment_id, artifact, current_actor(),
        comment=data.get("comment"),
        source=data.get("submission_source") or "client",
    )
    return jsonify(result), 201


@assignments_bp.route("/assignments/<int:assignment_id>/history", methods=["GET"])
@require_actor
def history(assignment_id: int):
    return jsonify(assignment_service.get_history(assignment_id))


@assignments_bp.route("/submissions/<int:submission_id>/review", methods=["POST"])
@require_actor
def review(submission_id: int):
    data = json_body()
    action = (data.get("action") or "").strip()
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "Field 'action' is required.")
    result = assignment_service.review(submission_id, action, current_actor(), remarks=data.get("remarks"))
    return jsonify(result)


@assignments_bp.route("/submissions/<int:submission_id>/download", methods=["GET"])
@require_actor
def download(submission_id: int):
    return jsonify(assignment_service.get_download(submission_id, current_actor()))


# ── Project views ────────────────────────────────────────────────────────────


@assignments_bp.route("/projects/<int:project_id>/assignments", methods=["GET"])
@require_actor
def project_assignments(project_id: int):
    return jsonify(assignment_service.list_project_assignments(project_id))


@assignments_bp.route("/projects/<int:project_id>/history", methods=["GET"])
@require_actor
def project_history(project_id: int):
    return jsonify(assignment_service.get_project_history(project_id))
