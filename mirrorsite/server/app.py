"""
Static Server - Flask app serving the built mirror.

run_server() is the long-running service: it owns the Orchestrator and
the CycleScheduler and serves the artifact tree until interrupted.

## Usage

    from mirrorsite.server.app import create_app, run_server

    app = create_app(settings)            # read-only, no cycles
    run_server(settings)                  # full service
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from flask import Flask, jsonify, request

from ..engine.orchestrator import Orchestrator
from ..engine.scheduler import CycleScheduler
from ..logging_config import setup_logging
from ..models.config import Settings
from ..observability.health import HealthChecker
from .routes import api_bp, site_bp

logger = logging.getLogger(__name__)

# Polled endpoints logged at DEBUG
POLL_ENDPOINTS = ("/api/status", "/api/health")


def create_app(
    settings: Settings,
    orchestrator: Optional[Orchestrator] = None,
    scheduler: Optional[CycleScheduler] = None,
) -> Flask:
    """Create the Flask application."""
    app = Flask(__name__, static_folder=None)

    app.config["SETTINGS"] = settings
    app.config["ORCHESTRATOR"] = orchestrator
    app.config["SCHEDULER"] = scheduler
    app.config["HEALTH_CHECKER"] = HealthChecker.from_settings(settings)

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(site_bp)

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith("/api/"):
            return jsonify({"success": False, "error": "Not found"}), 404
        return "Not found", 404

    @app.errorhandler(500)
    def internal_server_error(e):
        logger.error(f"Unhandled 500 on {request.method} {request.path}: {e}")
        return jsonify({"success": False, "error": f"Internal server error: {e}"}), 500

    @app.before_request
    def log_request_start():
        request._start_time = time.time()

    @app.after_request
    def log_request_end(response):
        if request.path.startswith("/api/"):
            duration_ms = int((time.time() - getattr(request, "_start_time", time.time())) * 1000)
            log_fn = logger.debug if request.path in POLL_ENDPOINTS else logger.info
            log_fn(f"{request.method} {request.path} → {response.status_code} ({duration_ms}ms)")
        return response

    logger.info(f"Server initialized (website={settings.paths.website})")
    return app


def run_server(settings: Settings, sync_on_start: Optional[bool] = None) -> None:
    """
    Run the full service: scheduler in the background, Flask in front.

    Args:
        settings: Resolved settings
        sync_on_start: Override settings.sync.sync_on_start
    """
    if settings.logs.console:
        setup_logging(settings.logs.level, settings.logs.format)

    if sync_on_start is None:
        sync_on_start = settings.sync.sync_on_start

    settings.paths.website.mkdir(parents=True, exist_ok=True)

    orchestrator = Orchestrator.from_settings(settings)
    scheduler = CycleScheduler(
        orchestrator.run_cycle,
        settings.sync.schedule,
        logger=orchestrator.log,
    )
    app = create_app(settings, orchestrator=orchestrator, scheduler=scheduler)

    host, port = settings.server.host, settings.server.port
    orchestrator.log.info(f"Serving {settings.paths.website} at http://{host}:{port}")

    scheduler.start(run_on_start=sync_on_start)
    try:
        app.run(host=host, port=port, threaded=True, use_reloader=False)
    finally:
        scheduler.stop()
        orchestrator.log.info("Server stopped")
        orchestrator.close()
