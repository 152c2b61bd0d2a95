"""
Access tokens — verification, and minting for tooling.

Login and refresh belong to the identity provider in front of the engine.
The engine checks the bearer token on each request and turns its claims into
an Actor; ``generate_access_token`` exists for tests, the ``issue-token`` CLI
command and service accounts such as the scheduler.

Claims:
    sub          actor id (string)
    roles        role names, expanded by the authorization gate
    permissions  extra capabilities unioned with the roles' grants (optional)
    type         "access"
    iss          JWT_ISSUER (default "docflow")
    iat, exp, jti

Algorithm: HS256. Lifetime: JWT_ACCESS_EXPIRES seconds (default 900).
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from docflow.services.authorization import Actor

ALGORITHM = "HS256"
TOKEN_TYPE = "access"
DEFAULT_ACCESS_EXPIRES = 900
REQUIRED_CLAIMS = ["sub", "exp", "iat"]


def _secret() -> str:
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _issuer() -> str:
    return current_app.config.get("JWT_ISSUER", "docflow")


def generate_access_token(actor_id, roles, permissions=None, expires_in: int | None = None) -> str:
    """Mint a signed access token for ``actor_id`` carrying ``roles``."""
    now = datetime.now(timezone.utc)
    lifetime = expires_in or current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)
    payload = {
        "sub": str(actor_id),
        "roles": sorted(set(roles or ())),
        "type": TOKEN_TYPE,
        "iss": _issuer(),
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
        "jti": uuid.uuid4().hex,
    }
    if permissions:
        payload["permissions"] = sorted(set(permissions))
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify signature, expiry, issuer and token type.

    Raises:
        jwt.ExpiredSignatureError: token is past ``exp``.
        jwt.InvalidTokenError: anything else wrong with it.
    """
    payload = jwt.decode(
        token,
        _secret(),
        algorithms=[ALGORITHM],
        issuer=_issuer(),
        options={"require": REQUIRED_CLAIMS},
    )
    if payload.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError(f"Expected an {TOKEN_TYPE} token, got {payload.get('type')!r}")
    if not str(payload["sub"]).strip():
        raise jwt.InvalidTokenError("Token has an empty subject")
    if not isinstance(payload.get("roles", []), list):
        raise jwt.InvalidTokenError("roles claim must be a list")
    return payload


def actor_from_token(token: str) -> Actor:
    return Actor.from_claims(decode_access_token(token))
