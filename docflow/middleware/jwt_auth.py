"""
JWT Auth Middleware — parses the Bearer token and sets ``g.actor``.

The middleware never rejects a request by itself: a missing, expired or
invalid token leaves ``g.actor = None`` and the ``require_actor`` decorator
on each endpoint answers 401.
"""

import logging
from functools import wraps

import jwt as pyjwt
from flask import g, request

from docflow.services.authorization import Actor
from docflow.services.jwt_service import actor_from_token
from docflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.actor = None
        g.auth_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]
        try:
            g.actor = actor_from_token(token)
        except pyjwt.ExpiredSignatureError:
            g.auth_error = "Token expired"
        except pyjwt.InvalidTokenError as exc:
            g.auth_error = "Invalid token"
            logger.debug("Rejected bearer token: %s", exc)


def current_actor() -> Actor | None:
    return getattr(g, "actor", None)


def require_actor(fn):
    """Endpoint decorator: 401 unless a valid bearer token identified the caller."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_actor() is None:
            message = getattr(g, "auth_error", None) or "Bearer token required"
            return api_error(E.UNAUTHENTICATED, message)
        return fn(*args, **kwargs)

    return wrapper
