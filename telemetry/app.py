"""Flask ingestion endpoint for client error reports."""

import json
import logging

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import MethodNotAllowed

from telemetry.config import Config, load_config
from telemetry.exceptions import ValidationError
from telemetry.formatter import format_client_error
from telemetry.log_store import APPLICATION, ERROR, LogStore
from telemetry.models import record_from_payload
from telemetry.rate_limiter import RateLimiter, resolve_identity
from telemetry.sanitizer import sanitize
from telemetry.validator import PayloadValidator

logger = logging.getLogger(__name__)

LOGGER_PATHS = ("/logger", "/logger.php")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _error(status: int, message: str):
    response = jsonify({"status": "error", "message": message})
    response.status_code = status
    return response


def create_app(config: Config | None = None, store: LogStore | None = None,
               rate_limiter: RateLimiter | None = None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = load_config()
    if store is None:
        store = LogStore(config)
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            config.rate_limit_enabled,
            config.rate_limit_max_requests,
            config.rate_limit_window_seconds,
        )
    validator = PayloadValidator()

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "store": store,
        "rate_limiter": rate_limiter,
        "validator": validator,
    }

    def record_event(category: str, level: str, message: str):
        try:
            store.log_event(category, level, message)
        except OSError:
            logger.exception("Could not record %s event: %s", level, message)

    record_event(
        APPLICATION,
        "INFO",
        f"Configuration loaded - log_dir: {config.log_dir}, "
        f"rate limit: {config.rate_limit_max_requests}/{config.rate_limit_window_seconds}s"
        f" ({'enabled' if config.rate_limit_enabled else 'disabled'}), "
        f"rotation: {config.max_file_size_bytes} bytes",
    )

    def parse_record():
        try:
            payload = json.loads(request.get_data(cache=False))
        except ValueError:
            raise ValidationError("Invalid data format") from None

        if not isinstance(payload, dict) or "message" not in payload:
            raise ValidationError("Invalid data format")

        is_valid, errors = validator.validate(payload)
        if not is_valid:
            raise ValidationError(errors[0])
        return record_from_payload(payload)

    # --- Routes ---

    @app.after_request
    def add_cors_headers(response):
        if request.path in LOGGER_PATHS:
            response.headers.update(CORS_HEADERS)
        return response

    @app.route("/logger", methods=["POST", "OPTIONS"])
    @app.route("/logger.php", methods=["POST", "OPTIONS"])
    def ingest_error():
        if request.method == "OPTIONS":
            return Response(status=200, mimetype="application/json")

        identity = resolve_identity(request.remote_addr)
        if not rate_limiter.admit(identity):
            if config.log_rate_limit_denials:
                record_event(APPLICATION, "WARNING", f"Rate limit exceeded for IP: {identity}")
            return _error(429, "Rate limit exceeded")

        try:
            store.rotate_if_oversize(APPLICATION)
            record = sanitize(parse_record())
            if not record.message:
                raise ValidationError("message is empty after sanitizing")
            store.append(APPLICATION, format_client_error(record, identity))
        except ValidationError as e:
            record_event(ERROR, "ERROR", f"Failed to log client error: {e.reason}")
            return _error(500, f"Failed to log error: {e.reason}")
        except OSError as e:
            logger.exception("Storage failure while logging client error from %s", identity)
            record_event(ERROR, "ERROR", f"Failed to log client error: {e}")
            return _error(500, f"Failed to log error: {e}")

        return jsonify({
            "status": "success",
            "message": "Error logged successfully",
            "timestamp": record.timestamp,
        })

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "log_dir": store.log_dir,
            "tracked_identities": rate_limiter.tracked_identities,
            "validation_stats": validator.get_stats(),
        })

    @app.errorhandler(MethodNotAllowed)
    def method_not_allowed(_e):
        return _error(405, "Method not allowed")

    @app.errorhandler(500)
    def unhandled_error(e):
        original = getattr(e, "original_exception", None) or e
        record_event(
            ERROR,
            "ERROR",
            f"Unhandled {type(original).__name__} in {request.method} {request.path}: {original}",
        )
        return _error(500, "Internal server error")

    return app
