"""Data-flow blueprint — JSON API consumed by the dashboard UI.

Endpoint groups:
  Metrics         GET  /api/v1/dashboard/metrics
                  GET  /api/v1/metrics/tests?date_from=&date_to=
  Executions      POST /api/v1/test-cases/<id>/executions
                  POST /api/v1/executions/<id>/resync
  Integrations    POST /api/v1/integrations/<id>/sync
                  GET  /api/v1/integrations/syncs
  Reports         POST /api/v1/reports
                  GET  /api/v1/reports
  Notifications   GET  /api/v1/notifications
                  POST /api/v1/notifications/<id>/read

Views are thin: they parse the request, call ``DataFlowService`` and
serialise the result. Domain exceptions are mapped to status codes by
the handlers below.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from qadash.blueprints import read_limit
from qadash.core.exceptions import (
    NotFoundError,
    PartialExecutionError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

data_flow_bp = Blueprint("data_flow", __name__, url_prefix="/api/v1")


def _service():
    return current_app.extensions["data_flow"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


# ── Error handlers ────────────────────────────────────────────────────────────


@data_flow_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return jsonify({"error": str(error)}), 404


@data_flow_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return jsonify({"error": str(error), "details": error.details}), 422


@data_flow_bp.errorhandler(PartialExecutionError)
def _handle_partial_execution(error: PartialExecutionError):
    logger.error("Partially applied execution endpoint=%s: %s", request.endpoint, error)
    return jsonify({
        "error": str(error),
        "execution_id": error.execution.get("id"),
        "resync_url": f"/api/v1/executions/{error.execution.get('id')}/resync",
    }), 500


@data_flow_bp.errorhandler(PersistenceError)
def _handle_persistence(error: PersistenceError):
    logger.error("Persistence failure endpoint=%s: %s", request.endpoint, error)
    return jsonify({"error": "Storage unavailable", "detail": str(error)}), 503


# ═════════════════════════════════════════════════════════════════════════
# Metrics
# ═════════════════════════════════════════════════════════════════════════


@data_flow_bp.route("/dashboard/metrics", methods=["GET"])
async def dashboard_metrics():
    """Dashboard KPIs for the trailing 7 days."""
    metrics = await _service().compute_dashboard_metrics()
    return jsonify(metrics.to_dict()), 200


@data_flow_bp.route("/metrics/tests", methods=["GET"])
async def test_metrics():
    """Pass/fail summary for an inclusive date window.

    Query params: date_from, date_to (YYYY-MM-DD, required),
                  include_executions (default true)
    """
    metrics = await _service().compute_test_metrics(
        request.args.get("date_from"), request.args.get("date_to"),
    )
    include = request.args.get("include_executions", "true").lower() != "false"
    return jsonify(metrics.to_dict(include_executions=include)), 200


# ═════════════════════════════════════════════════════════════════════════
# Executions
# ═════════════════════════════════════════════════════════════════════════


@data_flow_bp.route("/test-cases/<test_case_id>/executions", methods=["POST"])
async def record_execution(test_case_id):
    """Record a run of a test case.

    Body: {outcome, execution_time?, error_message?, environment?, browser?}
    ``status`` is accepted as an alias of ``outcome``.
    Returns: created execution (201).
    """
    data = _json_body()
    execution = await _service().record_execution(
        test_case_id,
        data.get("outcome") or data.get("status"),
        data.get("execution_time", 0.0),
        data.get("error_message"),
        environment=data.get("environment"),
        browser=data.get("browser"),
    )
    return jsonify(execution), 201


@data_flow_bp.route("/executions/<execution_id>/resync", methods=["POST"])
async def resync_execution(execution_id):
    """Re-apply a recorded execution's outcome to its test case."""
    test_case = await _service().resync_test_case_status(execution_id)
    return jsonify(test_case), 200


# ═════════════════════════════════════════════════════════════════════════
# Integrations
# ═════════════════════════════════════════════════════════════════════════


@data_flow_bp.route("/integrations/<integration_id>/sync", methods=["POST"])
async def sync_integration(integration_id):
    """Run one sync against the integration's provider.

    Body: {test_case_ids?: [...]}; without it the newest test cases are used.
    Returns: SyncResult (200 whether or not the provider step succeeded).
    """
    data = _json_body()
    result = await _service().sync_integration(
        integration_id, test_case_ids=data.get("test_case_ids"),
    )
    return jsonify(result.to_dict()), 200


@data_flow_bp.route("/integrations/syncs", methods=["GET"])
async def sync_history():
    """Recent sync attempts. Query params: integration_id?, limit?"""
    syncs = await _service().list_sync_history(
        request.args.get("integration_id"), read_limit(10),
    )
    return jsonify({"items": syncs, "total": len(syncs)}), 200


# ═════════════════════════════════════════════════════════════════════════
# Reports
# ═════════════════════════════════════════════════════════════════════════


@data_flow_bp.route("/reports", methods=["POST"])
async def create_report():
    """Generate a report.

    Body: {type, date_from, date_to, name?}
    Returns: {"report", "metrics"} (201).
    """
    data = _json_body()
    bundle = await _service().generate_report(
        data.get("type"), data.get("date_from"), data.get("date_to"), name=data.get("name"),
    )
    return jsonify(bundle), 201


@data_flow_bp.route("/reports", methods=["GET"])
async def list_reports():
    reports = await _service().list_reports(read_limit(20))
    return jsonify({"items": reports, "total": len(reports)}), 200


# ═════════════════════════════════════════════════════════════════════════
# Notifications
# ═════════════════════════════════════════════════════════════════════════


@data_flow_bp.route("/notifications", methods=["GET"])
async def list_notifications():
    notifications = await _service().list_notifications(read_limit(10))
    return jsonify({"items": notifications, "total": len(notifications)}), 200


@data_flow_bp.route("/notifications/<notification_id>/read", methods=["POST"])
async def mark_notification_read(notification_id):
    notification = await _service().mark_notification_read(notification_id)
    return jsonify(notification), 200
