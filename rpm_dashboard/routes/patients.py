"""Patient list, profile and treatment plan routes."""

from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request

from rpm_common.errors import PatientNotFoundError, ValidationError
from rpm_common.models import (
    Patient,
    PatientStatus,
    RiskLevel,
    TreatmentPlan,
    parse_datetime,
)

from .api import check_api_key, json_body, parse_enum

patients_bp = Blueprint("patients", __name__)

REQUIRED_PATIENT_FIELDS = ("firstName", "lastName", "dateOfBirth", "phone")

RECENT_READING_DAYS = 30
RECENT_READING_LIMIT = 100
RECENT_NOTE_LIMIT = 20

# JSON key -> (model field, expected type)
PATIENT_FIELDS = {
    "firstName": ("first_name", str),
    "lastName": ("last_name", str),
    "dateOfBirth": ("date_of_birth", str),
    "gender": ("gender", str),
    "phone": ("phone", str),
    "email": ("email", str),
    "address": ("address", dict),
    "emergencyContact": ("emergency_contact", dict),
    "diagnosis": ("diagnosis", list),
    "riskLevel": ("risk_level", RiskLevel),
    "targetSystolic": ("target_systolic", int),
    "targetDiastolic": ("target_diastolic", int),
    "medications": ("medications", list),
    "assignedClinicianId": ("assigned_clinician_id", str),
    "status": ("status", PatientStatus),
    "lastContact": ("last_contact", datetime),
}

NULLABLE_PATIENT_FIELDS = {
    "email", "address", "emergencyContact", "assignedClinicianId", "lastContact",
}

DEFAULT_THRESHOLDS = {
    "systolicHigh": 180,
    "systolicLow": 90,
    "diastolicHigh": 110,
    "diastolicLow": 60,
}


def patient_fields_from_json(data: dict) -> dict:
    """Convert camelCase JSON keys to typed model fields.

    ``id`` is ignored; any other unknown key is a validation error.
    """
    fields = {}
    for key, value in data.items():
        if key in ("id", "createdAt", "updatedAt"):
            continue
        if key not in PATIENT_FIELDS:
            raise ValidationError(f"Unknown patient field: {key}", field=key)

        name, expected = PATIENT_FIELDS[key]
        if value is None:
            if key not in NULLABLE_PATIENT_FIELDS:
                raise ValidationError(f"{key} cannot be null", field=key)
            fields[name] = None
        elif expected in (RiskLevel, PatientStatus):
            fields[name] = parse_enum(expected, value, key)
        elif expected is datetime:
            try:
                fields[name] = parse_datetime(value)
            except (TypeError, ValueError, AttributeError):
                raise ValidationError(f"{key} must be an ISO timestamp", field=key) from None
        elif expected is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{key} must be an integer", field=key)
            fields[name] = value
        elif not isinstance(value, expected):
            raise ValidationError(f"{key} has the wrong type", field=key)
        else:
            fields[name] = value
    return fields


def _get_patient_or_404(patient_id: str) -> Patient:
    patient = current_app.store.get_patient(patient_id)
    if patient is None:
        raise PatientNotFoundError(patient_id)
    return patient


@patients_bp.route("", methods=["GET"])
@check_api_key
def list_patients():
    """List patients.

    Query params:
    - status: active, inactive, pending
    - riskLevel: critical, high, moderate, low, stable
    - search: name or ID substring
    """
    status = parse_enum(PatientStatus, request.args.get("status"), "status")
    risk_level = parse_enum(RiskLevel, request.args.get("riskLevel"), "riskLevel")
    search = request.args.get("search") or None

    patients = current_app.store.list_patients(
        status=status, risk_level=risk_level, search=search,
    )

    return jsonify({
        "patients": [p.to_dict() for p in patients],
        "total": len(patients),
    })


@patients_bp.route("", methods=["POST"])
@check_api_key
def create_patient():
    """Create a new patient record."""
    data = json_body()
    for key in REQUIRED_PATIENT_FIELDS:
        if not data.get(key):
            raise ValidationError(f"Missing required field: {key}", field=key)

    fields = patient_fields_from_json(data)
    fields.setdefault("assigned_clinician_id", current_app.config["DEFAULT_CLINICIAN_ID"])
    # Drop explicit nulls so model defaults apply
    fields = {k: v for k, v in fields.items() if v is not None}

    now = datetime.now()
    patient = current_app.store.add_patient(Patient(
        id=data.get("id") or "",
        created_at=now,
        updated_at=now,
        **fields,
    ))

    return jsonify(patient.to_dict()), 201


@patients_bp.route("/<patient_id>", methods=["GET"])
@check_api_key
def get_patient(patient_id):
    """Patient profile with recent readings and notes."""
    store = current_app.store
    patient = _get_patient_or_404(patient_id)

    since = datetime.now() - timedelta(days=RECENT_READING_DAYS)
    readings = store.list_readings(patient_id, since=since, limit=RECENT_READING_LIMIT)
    notes = store.list_notes(patient_id, limit=RECENT_NOTE_LIMIT)

    return jsonify({
        "patient": patient.to_dict(),
        "recentReadings": [r.to_dict() for r in readings],
        "notes": [n.to_dict() for n in notes],
    })


@patients_bp.route("/<patient_id>", methods=["PUT"])
@check_api_key
def update_patient(patient_id):
    """Update only the provided fields."""
    _get_patient_or_404(patient_id)

    fields = patient_fields_from_json(json_body())
    fields["updated_at"] = datetime.now()

    patient = current_app.store.update_patient(patient_id, fields)
    if patient is None:
        raise PatientNotFoundError(patient_id)

    return jsonify(patient.to_dict())


@patients_bp.route("/<patient_id>/treatment-plan", methods=["GET"])
@check_api_key
def get_treatment_plan(patient_id):
    """Saved plan, or an empty plan with default thresholds."""
    _get_patient_or_404(patient_id)

    plan = current_app.store.get_treatment_plan(patient_id)
    if plan is None:
        plan = TreatmentPlan(patient_id=patient_id, alert_thresholds=dict(DEFAULT_THRESHOLDS))

    return jsonify(plan.to_dict())


@patients_bp.route("/<patient_id>/treatment-plan", methods=["PUT"])
@check_api_key
def save_treatment_plan(patient_id):
    _get_patient_or_404(patient_id)
    data = json_body()

    medications = data.get("medications", [])
    if not isinstance(medications, list):
        raise ValidationError("medications must be a list", field="medications")
    for key in ("monitoring", "alertThresholds", "lifestyle"):
        if not isinstance(data.get(key, {}), dict):
            raise ValidationError(f"{key} must be an object", field=key)

    thresholds = {**DEFAULT_THRESHOLDS, **data.get("alertThresholds", {})}
    for key, value in thresholds.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"alertThresholds.{key} must be an integer", field=key)
    if thresholds["systolicLow"] >= thresholds["systolicHigh"]:
        raise ValidationError("systolicLow must be below systolicHigh", field="systolicLow")
    if thresholds["diastolicLow"] >= thresholds["diastolicHigh"]:
        raise ValidationError("diastolicLow must be below diastolicHigh", field="diastolicLow")

    plan = current_app.store.save_treatment_plan(TreatmentPlan(
        patient_id=patient_id,
        medications=medications,
        monitoring=data.get("monitoring", {}),
        alert_thresholds=thresholds,
        lifestyle=data.get("lifestyle", {}),
        updated_at=datetime.now(),
    ))

    return jsonify(plan.to_dict())
