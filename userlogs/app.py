"""Flask transport for the log service: routing, error mapping, CORS, streaming."""

import logging
import math
import time
from datetime import datetime, timezone

from flask import Flask, Response, jsonify, request, stream_with_context

from userlogs.config import Config
from userlogs.errors import NotFound, RateLimited, StorageFailure, ValidationError
from userlogs.formatter import format_timestamp
from userlogs.service import LogService
from userlogs.validator import REQUIRED_FIELDS

logger = logging.getLogger(__name__)

_RATE_LIMITED_PREFIXES = ("/log", "/api/")

_STORAGE_MESSAGES = {
    "append": "Internal server error",
    "list": "Failed to read user_logs directory",
    "read": "Failed to read log file",
    "archive": "Failed to create download",
}


def client_key(trust_proxy: bool) -> str:
    """Best-effort client IP for rate limiting."""
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.remote_addr or "unknown"


def create_app(config: Config = None, service: LogService = None) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config()
    if service is None:
        service = LogService.from_config(config)

    started = time.monotonic()

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "service": service,
    }

    # --- Middleware ---

    @app.before_request
    def rate_limit():
        if request.method == "OPTIONS":
            return Response(status=204)
        if not request.path.startswith(_RATE_LIMITED_PREFIXES):
            return None
        decision = service.rate_limiter.enforce(client_key(config.trust_proxy))
        request.environ["userlogs.rate_limit"] = decision
        return None

    @app.after_request
    def add_headers(response):
        response.headers["Access-Control-Allow-Origin"] = config.cors_origin
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["X-Content-Type-Options"] = "nosniff"
        decision = request.environ.get("userlogs.rate_limit")
        if decision is not None and service.rate_limiter.enabled:
            response.headers["X-RateLimit-Limit"] = str(decision.limit)
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response

    # --- Error mapping ---

    @app.errorhandler(ValidationError)
    def on_validation_error(exc):
        body = {
            "error": "Missing required fields" if exc.missing else "Invalid request",
            "required": REQUIRED_FIELDS,
            "fields": exc.fields,
            "details": exc.messages,
        }
        return jsonify(body), 400

    @app.errorhandler(NotFound)
    def on_not_found(exc):
        return jsonify({"error": "Log file not found", "user_id": exc.user_id}), 404

    @app.errorhandler(RateLimited)
    def on_rate_limited(exc):
        retry_after = max(1, math.ceil(exc.retry_after))
        response = jsonify({"error": "Too many requests", "retry_after": retry_after})
        response.status_code = 429
        response.headers["Retry-After"] = str(retry_after)
        response.headers["X-RateLimit-Limit"] = str(service.rate_limiter.max_requests)
        response.headers["X-RateLimit-Remaining"] = "0"
        return response

    @app.errorhandler(StorageFailure)
    def on_storage_failure(exc):
        # Cause already logged with traceback where it was raised.
        logger.error("%s on %s %s", exc, request.method, request.path)
        message = _STORAGE_MESSAGES.get(exc.operation, "Internal server error")
        return jsonify({"error": message}), 500

    # --- Routes ---

    @app.route("/health")
    def health():
        return jsonify({
            "status": "OK",
            "timestamp": format_timestamp(datetime.now(timezone.utc)),
            "uptime": round(time.monotonic() - started, 3),
            "validation": service.validator.get_stats(),
        })

    @app.route("/")
    def index():
        return jsonify({
            "service": "user-log-server",
            "endpoints": [
                "POST /log",
                "GET /api/logs",
                "GET /api/logs/download",
                "GET /api/logs/<user_id>",
                "GET /health",
            ],
        })

    @app.route("/log", methods=["POST"])
    def append_log():
        payload = request.get_json(force=True, silent=True)
        if payload is None:
            payload = {}
        result = service.append_payload(payload)
        return jsonify({
            "success": True,
            "message": "Log entry added successfully",
            "user_id": result.user_id,
            "timestamp": result.received_at,
            "created": result.created_at,
        })

    @app.route("/api/logs")
    def list_logs():
        records = service.list_identities()
        return jsonify({"success": True, "logs": [r.to_dict() for r in records]})

    @app.route("/api/logs/download")
    def download_logs():
        filename, chunks = service.archive()

        def generate():
            try:
                yield from chunks
            except StorageFailure:
                # Headers are already sent; aborting the body is the only
                # signal left, so the client sees a truncated download.
                logger.exception("Archive stream aborted")
                raise

        response = Response(stream_with_context(generate()), mimetype="application/zip")
        response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response

    @app.route("/api/logs/<path:user_id>")
    def read_log(user_id):
        result = service.read(user_id)
        return jsonify({
            "success": True,
            "user_id": result.user_id,
            "entries": result.entries,
            "content": result.lines,
        })

    return app
