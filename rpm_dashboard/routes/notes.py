"""Clinician note routes."""

from datetime import datetime

from flask import Blueprint, current_app, jsonify, request

from rpm_common.errors import NoteNotFoundError, ValidationError
from rpm_common.models import ClinicianNote, NoteType

from .api import check_api_key, current_user, int_arg, json_body, parse_enum

notes_bp = Blueprint("notes", __name__)


@notes_bp.route("", methods=["GET"])
@check_api_key
def list_notes():
    """Query params: patientId (required), limit (default 50)."""
    patient_id = request.args.get("patientId")
    if not patient_id:
        raise ValidationError("patientId is required", field="patientId")

    limit = int_arg("limit", default=50)
    notes = current_app.store.list_notes(patient_id, limit=limit)

    return jsonify({
        "notes": [n.to_dict() for n in notes],
        "total": len(notes),
    })


@notes_bp.route("", methods=["POST"])
@check_api_key
def create_note():
    """Create a new clinician note.

    Body:
    - patientId: string
    - content: string
    - noteType?: general, medication-change, follow-up, alert-response, care-plan
    - relatedReadingId?: string
    - relatedAlertId?: string
    """
    data = json_body()
    if not data.get("patientId") or not data.get("content"):
        raise ValidationError("patientId and content are required")
    if not isinstance(data["content"], str):
        raise ValidationError("content must be a non-empty string", field="content")
    if not isinstance(data["patientId"], str):
        raise ValidationError("patientId must be a string", field="patientId")

    note_type = parse_enum(NoteType, data.get("noteType"), "noteType") or NoteType.GENERAL
    clinician_id = current_user()
    if clinician_id == current_app.config["DEFAULT_CLINICIAN_ID"]:
        clinician_name = current_app.config["DEFAULT_CLINICIAN_NAME"]
    else:
        clinician_name = clinician_id

    now = datetime.now()
    note = current_app.store.add_note(ClinicianNote(
        id="",
        patient_id=data["patientId"],
        clinician_id=clinician_id,
        clinician_name=clinician_name,
        content=data["content"],
        note_type=note_type,
        related_reading_id=data.get("relatedReadingId"),
        related_alert_id=data.get("relatedAlertId"),
        created_at=now,
        updated_at=now,
    ))

    return jsonify(note.to_dict()), 201


@notes_bp.route("/<note_id>", methods=["GET"])
@check_api_key
def get_note(note_id):
    note = current_app.store.get_note(note_id)
    if note is None:
        raise NoteNotFoundError(note_id)
    return jsonify(note.to_dict())


@notes_bp.route("/<note_id>", methods=["PUT"])
@check_api_key
def update_note(note_id):
    """Update a note's content or type."""
    data = json_body()
    fields = {"updated_at": datetime.now()}

    if data.get("content") is not None:
        if not isinstance(data["content"], str) or not data["content"]:
            raise ValidationError("content must be a non-empty string", field="content")
        fields["content"] = data["content"]
    if data.get("noteType") is not None:
        fields["note_type"] = parse_enum(NoteType, data["noteType"], "noteType")

    note = current_app.store.update_note(note_id, fields)
    if note is None:
        raise NoteNotFoundError(note_id)
    return jsonify(note.to_dict())


@notes_bp.route("/<note_id>", methods=["DELETE"])
@check_api_key
def delete_note(note_id):
    if not current_app.store.delete_note(note_id):
        raise NoteNotFoundError(note_id)
    return jsonify({"success": True, "deletedId": note_id})
