"""
Server Routes - Static artifact tree plus a small JSON API.

Blueprints:
    site_bp   /  and  /<path>     files from the serving root
    api_bp    /api/status
              /api/health
              /api/sync   (POST)
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from flask import Blueprint, abort, current_app, jsonify, send_from_directory

from .. import __version__
from ..observability.health import HealthChecker
from ..models.status import ServiceStatus
from ..persistence.status_file import load_status, status_path

logger = logging.getLogger(__name__)

site_bp = Blueprint("site", __name__)
api_bp = Blueprint("api", __name__)


def _settings():
    return current_app.config["SETTINGS"]


def _orchestrator():
    return current_app.config.get("ORCHESTRATOR")


def _scheduler():
    return current_app.config.get("SCHEDULER")


def _website() -> Path:
    return Path(_settings().paths.website)


# ── Static files ─────────────────────────────────────────────────────


@site_bp.route("/")
def index():
    """Serve the landing page."""
    website = _website()
    if not (website / "index.html").is_file():
        abort(404)
    return send_from_directory(str(website), "index.html")


@site_bp.route("/<path:filename>")
def static_file(filename: str):
    """Serve a file from the serving root; directories get their index.html."""
    website = _website()
    if filename.endswith("/") or (website / filename).is_dir():
        filename = filename.rstrip("/") + "/index.html"
    return send_from_directory(str(website), filename)


# ── API ──────────────────────────────────────────────────────────────


@api_bp.route("/status")
def api_status():
    """Service version, last successful sync, last cycle and next scheduled run."""
    orchestrator = _orchestrator()
    if orchestrator is not None:
        status = orchestrator.load_status()
        mirror = orchestrator.mirror.state.to_dict()
        running = orchestrator.is_running
    else:
        try:
            status = load_status(status_path(_settings().paths.state))
        except Exception as e:
            logger.warning(f"Could not read service status: {e}")
            status = ServiceStatus()
        mirror = None
        running = False

    scheduler = _scheduler()

    return jsonify({
        "status": "running",
        "version": __version__,
        "lastSync": status.last_success_iso,
        "lastCycle": status.last_cycle.model_dump() if status.last_cycle else None,
        "cycleInProgress": running,
        "mirror": mirror,
        "nextRun": scheduler.next_run_time() if scheduler is not None else None,
    })


@api_bp.route("/health")
def api_health():
    """HealthChecker report; 503 when unhealthy."""
    checker: HealthChecker = current_app.config["HEALTH_CHECKER"]
    report = checker.check()
    code = 503 if report.status.value == "unhealthy" else 200
    return jsonify(report.to_dict()), code


@api_bp.route("/sync", methods=["POST"])
def api_sync():
    """Start a cycle in the background."""
    orchestrator = _orchestrator()
    if orchestrator is None:
        return jsonify({"success": False, "error": "No orchestrator attached"}), 503
    if orchestrator.is_running:
        return jsonify({"success": False, "error": "A cycle is already running"}), 409

    thread = threading.Thread(target=orchestrator.run_cycle, name="api-cycle", daemon=True)
    thread.start()
    logger.info("Cycle triggered via /api/sync")
    return jsonify({"success": True, "message": "Cycle started"}), 202
