# Folder: qport-core/app/middleware.py
#
# Request instrumentation for the dashboard API.
# Wraps EVERY Flask request transparently - routes don't change.
#
# Request arrives → before_request (start timer)
# Route handler runs
# after_request → one log line: method, path, status, latency

import time
import logging
from flask import request, g

logger = logging.getLogger(__name__)


def register_middleware(app):
    """Registers before/after request hooks on the app."""

    @app.before_request
    def before_request():
        g.start_time = time.time()

    @app.after_request
    def after_request(response):
        start = getattr(g, "start_time", None)
        latency_ms = (time.time() - start) * 1000 if start else 0.0
        response.headers["X-Response-Time-Ms"] = f"{latency_ms:.1f}"
        logger.info(
            f"{request.method} {request.path} | "
            f"{response.status_code} | {latency_ms:.1f}ms"
        )
        return response

    @app.errorhandler(Exception)
    def handle_exception(e):
        # HTTP errors (404, 405...) keep their own response
        code = getattr(e, "code", None)
        if isinstance(code, int) and code < 500:
            return {"error": getattr(e, "description", str(e))}, code
        logger.error(f"Unhandled error on {request.path}: {e}", exc_info=True)
        return {"error": "Internal server error"}, 500
