"""
Request id and timing.

Every request gets ``g.request_id`` (the caller's X-Request-ID, or a fresh
one) before authentication runs, so log records and audit rows written
while handling it carry the same id. The response echoes the id and adds
X-Request-Duration-Ms. One log line per API call: WARNING when slow,
ERROR on 5xx, DEBUG otherwise.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000
MAX_REQUEST_ID_LENGTH = 64


def _incoming_request_id() -> str:
    supplied = request.headers.get("X-Request-ID", "").strip()
    if supplied and len(supplied) <= MAX_REQUEST_ID_LENGTH:
        return supplied
    return uuid.uuid4().hex[:12]


def init_request_timing(app: Flask):
    @app.before_request
    def _stamp_request():
        g.request_started = time.perf_counter()
        g.request_id = _incoming_request_id()

    @app.after_request
    def _finish_request(response):
        started = getattr(g, "request_started", None)
        if started is None:
            return response
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"

        if not request.path.startswith("/api/") or request.path == "/api/v1/health":
            return response

        if elapsed_ms > SLOW_REQUEST_MS:
            level = logging.WARNING
        elif response.status_code >= 500:
            level = logging.ERROR
        else:
            level = logging.DEBUG
        logger.log(
            level, "%s %s -> %d", request.method, request.path, response.status_code,
            extra={
                "endpoint": request.endpoint,
                "status": response.status_code,
                "duration_ms": elapsed_ms,
                "remote_addr": request.remote_addr,
            },
        )
        return response
