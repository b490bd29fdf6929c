"""
Request timing middleware.

Every /api/v1 response gets ``X-Request-ID`` (echoed from the request or
generated) and ``X-Request-Duration-Ms``. One log line per request is
written with the request id, user and project as structured extras:

    5xx                         ERROR
    slower than SLOW_REQUEST_MS WARNING
    anything else               DEBUG

Health probes are timed but never logged.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_QUIET_PREFIXES = ("/api/v1/health", "/static")

DEFAULT_SLOW_REQUEST_MS = 1000


def _project_id() -> int | None:
    """Project the request is about: the ``pid`` URL segment or ``?project_id=``."""
    view_args = request.view_args or {}
    value = view_args.get("pid")
    if value is None:
        value = request.args.get("project_id", type=int)
    return value


def init_request_timing(app: Flask):
    slow_ms = app.config.get("SLOW_REQUEST_MS", DEFAULT_SLOW_REQUEST_MS)

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish_timer(response):
        start = g.get("request_start")
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"

        if request.path.startswith(_QUIET_PREFIXES):
            return response

        if response.status_code >= 500:
            level = logging.ERROR
        elif duration_ms > slow_ms:
            level = logging.WARNING
        else:
            level = logging.DEBUG

        logger.log(
            level, "%s %s -> %d (%.0fms)",
            request.method, request.path, response.status_code, duration_ms,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
                "request_id": g.request_id,
                "user_id": g.get("user_id"),
                "project_id": _project_id(),
            },
        )
        return response
