"""
Per-request id and duration.

The id comes from the caller's X-Request-ID header when present, so a
submission can be traced from the client through the analysis run it
triggers. Both values are echoed back as response headers. Requests over
SLOW_THRESHOLD_MS log a warning, 5xx responses an error, the rest debug.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_THRESHOLD_MS = 1000

# Probed every few seconds by the load balancer.
_QUIET_PATHS = frozenset({"/api/v1/health/ready", "/api/v1/health/live"})


def _log_level(status: int, duration_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if duration_ms > SLOW_THRESHOLD_MS:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    @app.before_request
    def _stamp_request():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish_request(response):
        started = getattr(g, "request_started", None)
        if started is None:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"

        if request.path not in _QUIET_PATHS:
            logger.log(
                _log_level(response.status_code, elapsed_ms),
                "%s %s -> %d", request.method, request.path, response.status_code,
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "duration_ms": elapsed_ms,
                    "remote_addr": request.remote_addr,
                },
            )
        return response
