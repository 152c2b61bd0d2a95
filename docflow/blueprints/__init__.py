"""
Document Review Workflow Engine
Blueprint registry and shared request helpers.

Layer contract:
    - Blueprints parse input, resolve the actor, call one service function
      and shape the JSON response.
    - No db.session calls and no capability checks here; services own both.
"""

from flask import request

from docflow.services.version_ledger import ARTIFACT_FIELDS


def json_body() -> dict:
    """Request JSON as a dict; anything else (missing, list, scalar) is empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def artifact_from(data: dict):
    """
    Artifact reference from a request body.

    Accepts either ``{"artifact": {...}}`` or the artifact fields at the top
    level. Returns None when neither is present.
    """
    if isinstance(data.get("artifact"), dict):
        return data["artifact"]
    flat = {k: data[k] for k in ARTIFACT_FIELDS if k in data}
    return flat or None

