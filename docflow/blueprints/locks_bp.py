"""
Lock manager endpoints.

``<lockable_type>`` is one of ``task`` or ``checklist_file``.

    POST   /api/v1/lockables/<type>/<id>/request-unlock     {reason} (201)
    POST   /api/v1/lockables/<type>/<id>/manual-lock
    POST   /api/v1/lockables/<type>/<id>/direct-unlock
    POST   /api/v1/lockables/<type>/<id>/review-unlock      {action: approve|reject, review_note?}
    GET    /api/v1/lockables/<type>/<id>/unlock-requests

    POST   /api/v1/unlock-requests/<rid>/review             {action: approve|reject, review_note?}
    GET    /api/v1/unlock-requests/pending
"""

from flask import Blueprint, jsonify

from docflow.blueprints import json_body
from docflow.middleware.jwt_auth import current_actor, require_actor
from docflow.services import lock_service
from docflow.utils.errors import E, api_error

locks_bp = Blueprint("locks", __name__, url_prefix="/api/v1")


def _decision(data: dict):
    return (data.get("action") or data.get("decision") or "").strip()


@locks_bp.route("/lockables/<lockable_type>/<int:lockable_id>/request-unlock", methods=["POST"])
@require_actor
def request_unlock(lockable_type: str, lockable_id: int):
    data = json_body()
    result = lock_service.request_unlock(lockable_type, lockable_id, current_actor(), data.get("reason"))
    return jsonify(result), 201


@locks_bp.route("/lockables/<lockable_type>/<int:lockable_id>/manual-lock", methods=["POST"])
@require_actor
def manual_lock(lockable_type: str, lockable_id: int):
    return jsonify(lock_service.manual_lock(lockable_type, lockable_id, current_actor()))


@locks_bp.route("/lockables/<lockable_type>/<int:lockable_id>/direct-unlock", methods=["POST"])
@require_actor
def direct_unlock(lockable_type: str, lockable_id: int):
    return jsonify(lock_service.direct_unlock(lockable_type, lockable_id, current_actor()))


@locks_bp.route("/lockables/<lockable_type>/<int:lockable_id>/review-unlock", methods=["POST"])
@require_actor
def review_unlock(lockable_type: str, lockable_id: int):
    data = json_body()
    decision = _decision(data)
    if not decision:
        return api_error(E.VALIDATION_REQUIRED, "Field 'action' is required.")
    result = lock_service.review_pending_for_lockable(
        lockable_type, lockable_id, decision, current_actor(), review_note=data.get("review_note"),
    )
    return jsonify(result)


@locks_bp.route("/lockables/<lockable_type>/<int:lockable_id>/unlock-requests", methods=["GET"])
@require_actor
def unlock_requests(lockable_type: str, lockable_id: int):
    return jsonify(lock_service.list_unlock_requests(lockable_type, lockable_id))


# ── Unlock requests ──────────────────────────────────────────────────────────


@locks_bp.route("/unlock-requests/<int:request_id>/review", methods=["POST"])
@require_actor
def review_request(request_id: int):
    data = json_body()
    decision = _decision(data)
    if not decision:
        return api_error(E.VALIDATION_REQUIRED, "Field 'action' is required.")
    result = lock_service.review_unlock_request(
        request_id, decision, current_actor(), review_note=data.get("review_note"),
    )
    return jsonify(result)


@locks_bp.route("/unlock-requests/pending", methods=["GET"])
@require_actor
def pending_requests():
    return jsonify(lock_service.list_pending_unlock_requests())
