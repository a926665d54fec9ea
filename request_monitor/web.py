"""Flask surface: front-end capture hook, ingestion endpoint and admin JSON API."""

import hmac
import logging

from flask import Flask, jsonify, request

from request_monitor import __version__
from request_monitor.config import Config
from request_monitor.exceptions import DescriptorError, StorageError
from request_monitor.gate import CaptureRules, should_capture
from request_monitor.models import RequestDescriptor
from request_monitor.monitor import RequestMonitor

logger = logging.getLogger(__name__)


def descriptor_from_request(req, status_code: int) -> RequestDescriptor:
    return RequestDescriptor(
        method=req.method,
        url=req.url,
        headers=dict(req.headers),
        status_code=status_code,
        remote_addr=req.remote_addr,
    )


def register_capture(app: Flask, monitor: RequestMonitor, rules: CaptureRules | None = None):
    """Log every anonymous front-end response *app* serves."""
    rules = rules or CaptureRules()

    @app.after_request
    def capture_request(response):
        if monitor.store is None:
            logger.debug("Monitor disabled, not capturing %s %s", request.method, request.path)
            return response
        descriptor = descriptor_from_request(request, response.status_code)
        if should_capture(descriptor, rules):
            try:
                monitor.ingest(descriptor)
            except StorageError:
                logger.warning("Skipped capture of %s %s: storage unavailable",
                               request.method, request.path)
        return response

    return capture_request


def create_app(config=None, monitor=None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config.from_env()
    if monitor is None:
        monitor = RequestMonitor(config)
        monitor.on_enable()

    app.config["components"] = {"config": config, "monitor": monitor}

    if config["capture"]["enabled"]:
        register_capture(app, monitor, CaptureRules.from_dict(config["capture"]))

    admin_token = config["admin"]["token"]

    @app.before_request
    def require_admin_token():
        if not admin_token or not request.path.startswith("/api/"):
            return None
        supplied = request.headers.get("X-Admin-Token", "")
        if not hmac.compare_digest(supplied, admin_token):
            return jsonify({"error": "unauthorized"}), 401
        return None

    @app.errorhandler(StorageError)
    def storage_unavailable(exc):
        return jsonify({"error": str(exc)}), 503

    # --- Routes ---

    @app.route("/")
    def index():
        return jsonify({"service": "request-monitor", "version": __version__})

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "total_logs": monitor.store.count(),
            "validation_stats": monitor.validator.get_stats(),
        })

    @app.route("/api/validation-stats")
    def validation_stats():
        return jsonify(monitor.validator.get_stats())

    @app.route("/api/ingest", methods=["POST"])
    def ingest():
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify({"status": "invalid", "errors": ["request body must be JSON"]}), 400
        try:
            log_id = monitor.ingest_payload(payload)
        except DescriptorError as exc:
            return jsonify({"status": "invalid", "errors": exc.errors}), 400
        except ValueError as exc:
            return jsonify({"status": "invalid", "errors": [str(exc)]}), 400
        return jsonify({"status": "accepted", "id": log_id}), 201

    @app.route("/api/logs", methods=["GET"])
    def list_logs():
        try:
            data = monitor.query(request.args.to_dict())
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        return jsonify(data)

    @app.route("/api/logs/<int:log_id>", methods=["GET"])
    def log_details(log_id):
        log = monitor.details(log_id)
        if log is None:
            return jsonify({"error": "Log not found"}), 404
        return jsonify(log)

    @app.route("/api/logs", methods=["DELETE"])
    def clear_logs():
        removed = monitor.clear()
        return jsonify({"status": "cleared", "removed": removed})

    return app
