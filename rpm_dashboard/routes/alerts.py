"""Alert query and lifecycle routes for the clinician UI."""

from flask import Blueprint, current_app, jsonify, request

from rpm_common.errors import AlertNotFoundError, ValidationError
from rpm_common.models import AlertSeverity, AlertStatus

from .api import check_api_key, current_user, json_body, parse_enum

alerts_bp = Blueprint("alerts", __name__)


@alerts_bp.route("", methods=["GET"])
@check_api_key
def list_alerts():
    """List alerts newest first.

    Query params:
    - status: new, acknowledged, resolved
    - severity: critical, warning, info
    - patientId: restrict to one patient
    """
    store = current_app.store

    status = parse_enum(AlertStatus, request.args.get("status"), "status")
    severity = parse_enum(AlertSeverity, request.args.get("severity"), "severity")
    patient_id = request.args.get("patientId")

    alerts = store.list_alerts(status=status, severity=severity, patient_id=patient_id)

    return jsonify({
        "alerts": [a.to_dict() for a in alerts],
        "total": len(alerts),
    })


@alerts_bp.route("", methods=["PATCH"])
@check_api_key
def update_alert():
    """Update alert status.

    Body:
    - alertId: string
    - status: "acknowledged" | "resolved"
    - resolution?: string
    """
    data = json_body()
    alert_id = data.get("alertId")
    new_status = data.get("status")

    if not alert_id or not new_status:
        raise ValidationError("alertId and status are required")
    if not isinstance(alert_id, str):
        raise ValidationError("alertId must be a string", field="alertId")

    alert = current_app.lifecycle.transition(
        alert_id,
        new_status,
        user=current_user(),
        resolution=data.get("resolution"),
    )

    return jsonify({"success": True, "alert": alert.to_dict()})


@alerts_bp.route("/stats", methods=["GET"])
@check_api_key
def alert_stats():
    """Alert counts by status and severity, plus response times."""
    return jsonify(current_app.store.get_alert_stats())


@alerts_bp.route("/<alert_id>", methods=["GET"])
@check_api_key
def get_alert(alert_id):
    """Get a single alert by ID."""
    alert = current_app.store.get_alert(alert_id)
    if alert is None:
        raise AlertNotFoundError(alert_id)

    return jsonify(alert.to_dict())


@alerts_bp.route("/<alert_id>/acknowledge", methods=["POST"])
@check_api_key
def acknowledge_alert(alert_id):
    """Acknowledge an alert."""
    alert = current_app.lifecycle.acknowledge(alert_id, acknowledged_by=current_user())
    return jsonify({"success": True, "alert": alert.to_dict()})


@alerts_bp.route("/<alert_id>/resolve", methods=["POST"])
@check_api_key
def resolve_alert(alert_id):
    """Resolve/close an alert, with optional resolution text."""
    data = json_body()
    alert = current_app.lifecycle.resolve(
        alert_id,
        resolved_by=current_user(),
        resolution=data.get("resolution"),
    )
    return jsonify({"success": True, "alert": alert.to_dict()})


@alerts_bp.route("/<alert_id>/contact", methods=["POST"])
@check_api_key
def record_contact(alert_id):
    """Record a call or message to the patient. Alert status is unchanged.

    Body:
    - method: "call" | "message"
    - details?: string
    """
    data = json_body()
    method = data.get("method")
    if not method:
        raise ValidationError("method is required", field="method")

    alert = current_app.lifecycle.record_contact(
        alert_id,
        method,
        performed_by=current_user(),
        details=data.get("details"),
    )
    return jsonify({"success": True, "alert": alert.to_dict()})


@alerts_bp.route("/<alert_id>/audit", methods=["GET"])
@check_api_key
def audit_log(alert_id):
    """Get the audit history for an alert."""
    store = current_app.store
    if store.get_alert(alert_id) is None:
        raise AlertNotFoundError(alert_id)

    entries = store.get_audit_log(alert_id)
    return jsonify({
        "alertId": alert_id,
        "entries": [e.to_dict() for e in entries],
    })
