"""Web Accessibility Engine — Flask web application."""

from __future__ import annotations

import io
import logging
import os
import uuid

from flask import Flask, jsonify, request, send_file

from a11y_engine.aggregator import AnalysisSession
from a11y_engine.config import Settings
from a11y_engine.dynamic_analyzer import PlaywrightSession, run_dynamic_analysis
from a11y_engine.errors import (
    A11yError,
    AnalysisTimeoutError,
    InvalidTargetError,
    NoResultsError,
    PageAnalysisError,
)
from a11y_engine.report_generator import format_summary, generate_accessibility_report
from a11y_engine.static_analyzer import run_static_analysis
from a11y_engine.wcag_service import WcagService

# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------

settings = Settings.from_env()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", os.urandom(24))

# In-process session store (sufficient for a single-process dev/demo server).
_sessions: dict = {}
_wcag_service: WcagService | None = None


def _get_session(session_id: str) -> AnalysisSession | None:
    return _sessions.get(session_id)


def _get_wcag_service() -> WcagService:
    global _wcag_service
    if _wcag_service is None:
        _wcag_service = WcagService(settings)
    return _wcag_service


def _error(exc: A11yError, status: int):
    return jsonify({"error": str(exc), "target": exc.target}), status


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


@app.errorhandler(InvalidTargetError)
def handle_invalid_target(exc: InvalidTargetError):
    return _error(exc, 400)


@app.errorhandler(NoResultsError)
def handle_no_results(exc: NoResultsError):
    return _error(exc, 409)


@app.errorhandler(AnalysisTimeoutError)
def handle_timeout(exc: AnalysisTimeoutError):
    return _error(exc, 504)


@app.errorhandler(PageAnalysisError)
def handle_page_failure(exc: PageAnalysisError):
    return _error(exc, 502)


@app.errorhandler(A11yError)
def handle_engine_error(exc: A11yError):
    logger.error("Unhandled analysis error: %s", exc)
    return _error(exc, 500)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.route("/sessions", methods=["POST"])
def create_session():
    session_id = str(uuid.uuid4())
    _sessions[session_id] = AnalysisSession()
    return jsonify({"session_id": session_id}), 201


@app.route("/sessions/<session_id>/static", methods=["POST"])
def analyze_static(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404

    payload = request.get_json(silent=True) or {}
    project_path = payload.get("projectPath", "")
    if not isinstance(project_path, str) or not project_path.strip():
        return jsonify({"error": "projectPath is required"}), 400

    patterns = {}
    for key in ("includePatterns", "excludePatterns"):
        value = payload.get(key) or None
        if value is not None and (
            not isinstance(value, list) or not all(isinstance(p, str) for p in value)
        ):
            return jsonify({"error": f"{key} must be a list of glob patterns"}), 400
        patterns[key] = value

    result = run_static_analysis(
        project_path, patterns["includePatterns"], patterns["excludePatterns"]
    )
    session.add(result)

    return jsonify({"result": result.to_dict(), "summary": format_summary(result)})


@app.route("/sessions/<session_id>/dynamic", methods=["POST"])
def analyze_dynamic(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404

    payload = request.get_json(silent=True) or {}
    url = payload.get("url", "")
    if not isinstance(url, str) or not url.strip():
        return jsonify({"error": "url is required"}), 400

    pages = payload.get("pages") or []
    if not isinstance(pages, list) or not all(isinstance(p, str) for p in pages):
        return jsonify({"error": "pages must be a list of URLs"}), 400

    timeout = payload.get("timeout", settings.timeout_ms)
    if not isinstance(timeout, int) or isinstance(timeout, bool):
        return jsonify({"error": "timeout must be an integer number of milliseconds"}), 400

    result = run_dynamic_analysis(
        url,
        pages=pages,
        wait_for_selector=payload.get("waitForSelector"),
        timeout_ms=timeout,
        session_factory=lambda: PlaywrightSession(settings.axe_script_url),
    )
    session.add(result)

    return jsonify({"result": result.to_dict(), "summary": format_summary(result)})


@app.route("/sessions/<session_id>/results", methods=["GET"])
def results(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404
    return jsonify(session.aggregate().to_dict())


@app.route("/sessions/<session_id>/results", methods=["DELETE"])
def clear_results(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404
    session.clear()
    return jsonify({"success": True})


@app.route("/sessions/<session_id>/report")
def report(session_id: str):
    session = _get_session(session_id)
    if session is None:
        return "Session not found", 404

    combined = session.require_results()
    title = request.args.get("title") or "Accessibility Analysis Report"
    include_links = request.args.get("includeWcagLinks", "true").lower() != "false"
    pdf_bytes = generate_accessibility_report(combined, title=title, include_wcag_links=include_links)
    logger.info("Report generated for session %s with %d issues", session_id, len(combined.issues))

    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name="accessibility_report.pdf",
    )


@app.route("/guidelines")
def guidelines():
    level = request.args.get("level") or None
    try:
        records = _get_wcag_service().get_guidelines(
            criterion=request.args.get("criterion") or None, level=level
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"guidelines": records})


# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app.run(debug=True, host="127.0.0.1", port=5000)
