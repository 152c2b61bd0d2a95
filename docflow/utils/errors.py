"""JSON error envelope and the app-level error handlers.

Every error the API returns has the same shape::

    {"error": "<message>", "code": "ERR_...", "details": {...}}

``details`` is omitted when empty. Workflow rejections raised by services
(``docflow.core.exceptions``) add ``details.current`` with the resource's
state at the moment of rejection.

Blueprints only call ``api_error`` for request-shape problems found before
a service runs (missing body field, unknown job name):

    return api_error(E.VALIDATION_REQUIRED, "action is required")
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from docflow.core.exceptions import WorkflowError

logger = logging.getLogger(__name__)


class E:
    """Codes for failures detected outside the service layer."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    NOT_FOUND = "ERR_NOT_FOUND"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"
    RATE_LIMITED = "ERR_RATE_LIMITED"
    INTERNAL = "ERR_INTERNAL"


_STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.PAYLOAD_TOO_LARGE: 413,
    E.RATE_LIMITED: 429,
    E.INTERNAL: 500,
}

# werkzeug status -> code, for HTTP errors raised by routing and extensions
_CODE_BY_STATUS = {
    400: E.VALIDATION_INVALID,
    404: E.NOT_FOUND,
    405: E.METHOD_NOT_ALLOWED,
    413: E.PAYLOAD_TOO_LARGE,
    429: E.RATE_LIMITED,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Build ``(response, status)`` for the envelope above.

    ``status`` defaults to the code's usual status, then to 400.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _STATUS_BY_CODE.get(code, 400)


def render_workflow_error(err: WorkflowError):
    if err.http_status >= 500:
        logger.error("Workflow failure: %s", err.message)
    else:
        logger.info("Rejected %s %s: %s %s", request.method, request.path, err.code, err.message)
    return api_error(err.code, err.message, status=err.http_status, details=err.to_details())


def register_error_handlers(app) -> None:
    """Render workflow rejections and HTTP errors as the JSON envelope."""

    app.register_error_handler(WorkflowError, render_workflow_error)

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        code = _CODE_BY_STATUS.get(exc.code)
        if code is None:
            return exc
        details = {"path": request.path} if exc.code == 404 else None
        if exc.code == 429:
            details = {"limit": exc.description}
        message = "Not found" if exc.code == 404 else exc.description or exc.name
        return api_error(code, message, status=exc.code, details=details)

    @app.errorhandler(500)
    def _internal(exc):
        logger.error("Unhandled error on %s %s", request.method, request.path,
                     exc_info=getattr(exc, "original_exception", None) or exc)
        return api_error(E.INTERNAL, "Internal server error")
