"""Blood pressure reading routes.

POST /api/readings       - submit a reading (tablet app)
POST /api/blood-pressure - same, response wrapped for the mobile app
GET  /api/readings       - a patient's readings with summary stats
"""

from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request

from rpm_common.errors import ValidationError
from rpm_common.models import calculate_stats

from .api import check_api_key, int_arg

readings_bp = Blueprint("readings", __name__)


@readings_bp.route("/readings", methods=["POST"])
@check_api_key
def create_reading():
    result = current_app.ingestor.submit(request.get_json(silent=True))
    return jsonify(result.reading.to_dict()), 201


@readings_bp.route("/blood-pressure", methods=["POST"])
@check_api_key
def create_blood_pressure():
    """Mobile app alias for reading submission."""
    result = current_app.ingestor.submit(request.get_json(silent=True))
    return jsonify({"success": True, "reading": result.reading.to_dict()}), 201


@readings_bp.route("/readings", methods=["GET"])
@check_api_key
def list_readings():
    """Query params: patientId (required), days (default 30), limit (default 100)."""
    patient_id = request.args.get("patientId")
    if not patient_id:
        raise ValidationError("patientId is required", field="patientId")

    days = int_arg("days", default=30)
    limit = int_arg("limit", default=100)
    since = datetime.now() - timedelta(days=days)

    readings = current_app.store.list_readings(patient_id, since=since, limit=limit)

    return jsonify({
        "readings": [r.to_dict() for r in readings],
        "stats": calculate_stats(readings).to_dict(),
    })
