"""
Operations endpoints: scheduled jobs and the audit trail.

    GET    /api/v1/jobs                    registered jobs with their last run
    POST   /api/v1/jobs/<name>/run         run a job now (jobs:run)
    PATCH  /api/v1/jobs/<name>             {enabled: bool} (jobs:run)
    GET    /api/v1/audit                   ?entity_type=&entity_id=&limit=

``/api/v1/health`` is registered by the app factory.
"""

from flask import Blueprint, jsonify, request

from docflow.blueprints import json_body
from docflow.middleware.jwt_auth import current_actor, require_actor
from docflow.models.audit import list_audit
from docflow.services.authorization import check_transition
from docflow.services.scheduler_service import SchedulerService, get_registered_jobs
from docflow.utils.errors import E, api_error

ops_bp = Blueprint("ops", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════════════════
#  SCHEDULED JOBS
# ═══════════════════════════════════════════════════════════════════════════

@ops_bp.route("/jobs", methods=["GET"])
@require_actor
def list_jobs():
    jobs = SchedulerService.list_jobs()
    return jsonify({"jobs": jobs, "total": len(jobs)})


@ops_bp.route("/jobs/<job_name>/run", methods=["POST"])
@require_actor
def run_job(job_name):
    """Manually trigger a scheduled job."""
    check_transition(current_actor(), "jobs.run")
    if job_name not in get_registered_jobs():
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    result = SchedulerService.run_job(job_name)
    return jsonify(result), 200 if result["status"] == "success" else 500


@ops_bp.route("/jobs/<job_name>", methods=["PATCH"])
@require_actor
def toggle_job(job_name):
    """Enable or disable a scheduled job."""
    check_transition(current_actor(), "jobs.run")
    enabled = json_body().get("enabled")
    if enabled is None:
        return api_error(E.VALIDATION_REQUIRED, "'enabled' field is required (true/false)")
    if not isinstance(enabled, bool):
        return api_error(E.VALIDATION_INVALID, "'enabled' must be true or false")
    result = SchedulerService.toggle_job(job_name, enabled)
    if not result:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    return jsonify(result)


# ═══════════════════════════════════════════════════════════════════════════
#  AUDIT
# ═══════════════════════════════════════════════════════════════════════════

@ops_bp.route("/audit", methods=["GET"])
@require_actor
def audit_trail():
    limit = min(500, max(1, request.args.get("limit", 200, type=int)))
    rows = list_audit(
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id") or None,
        limit=limit,
    )
    return jsonify({"audit_logs": rows, "total": len(rows)})
