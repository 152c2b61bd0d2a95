"""
Project task endpoints.

    POST   /api/v1/tasks                  {title, project_id?, assignee_id?, due_date?, description?} (201)
    GET    /api/v1/tasks/<id>
    GET    /api/v1/projects/<pid>/tasks  ?assignee_id=<id>|me, with lock state
    PUT    /api/v1/tasks/<id>             edit title / description / assignee / due date
    POST   /api/v1/tasks/<id>/status      {status, blocked_reason?}

A locked task answers 409 ERR_INVALID_STATE to edits unless the caller can
manage locks.
"""

from flask import Blueprint, jsonify, request

from docflow.blueprints import json_body
from docflow.middleware.jwt_auth import current_actor, require_actor
from docflow.services import task_service
from docflow.utils.errors import E, api_error

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/v1")


@tasks_bp.route("/tasks", methods=["POST"])
@require_actor
def create_task():
    data = json_body()
    if not (data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "title is required")
    return jsonify(task_service.create_task(data, current_actor())), 201


@tasks_bp.route("/tasks/<int:task_id>", methods=["GET"])
@require_actor
def get_task(task_id: int):
    return jsonify(task_service.get_task(task_id))


@tasks_bp.route("/projects/<int:project_id>/tasks", methods=["GET"])
@require_actor
def project_tasks(project_id: int):
    assignee_id = request.args.get("assignee_id") or None
    if assignee_id == "me":
        assignee_id = current_actor().id
    return jsonify(task_service.list_project_tasks(project_id, assignee_id=assignee_id))


@tasks_bp.route("/tasks/<int:task_id>", methods=["PUT"])
@require_actor
def update_task(task_id: int):
    return jsonify(task_service.update_task(task_id, json_body(), current_actor()))


@tasks_bp.route("/tasks/<int:task_id>/status", methods=["POST"])
@require_actor
def update_status(task_id: int):
    data = json_body()
    status = (data.get("status") or "").strip()
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    result = task_service.update_status(
        task_id, status, current_actor(), blocked_reason=data.get("blocked_reason"),
    )
    return jsonify(result)
