"""Shared API plumbing: API key guard, error mapping, analytics endpoints."""

import logging
from enum import Enum
from functools import wraps
from typing import TypeVar

from flask import Blueprint, current_app, jsonify, request

from rpm_common.analytics import population_summary
from rpm_common.errors import (
    DuplicateRecordError,
    InvalidTransitionError,
    MonitoringError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

E = TypeVar("E", bound=Enum)

ERROR_STATUS_CODES = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (DuplicateRecordError, 409),
)


def check_api_key(f):
    """Decorator to check API key for protected endpoints."""
    @wraps(f)
    def decorated(*args, **kwargs):
        api_key = current_app.config.get("DASHBOARD_API_KEY")

        # If no API key configured, allow all requests (dev mode)
        if not api_key:
            return f(*args, **kwargs)

        # Check key from query param or header
        provided_key = request.args.get("key") or request.headers.get("X-API-Key")

        if provided_key != api_key:
            return jsonify({"error": "Invalid or missing API key"}), 401

        return f(*args, **kwargs)

    return decorated


def current_user() -> str:
    """Identity of the clinician making the request."""
    return request.headers.get("X-User") or current_app.config["DEFAULT_CLINICIAN_ID"]


def json_body() -> dict:
    """Request JSON as a dict; anything else is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_enum(enum_cls: type[E], value: str | None, name: str) -> E | None:
    """Parse an optional enum value from a query arg or body field."""
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(
            f"Invalid {name}: {value} (expected one of {allowed})", field=name
        ) from None


def int_arg(name: str, default: int, minimum: int = 1) -> int:
    """Read a positive integer query arg."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", field=name) from None
    if value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}", field=name)
    return value


@api_bp.app_errorhandler(MonitoringError)
def handle_monitoring_error(error: MonitoringError):
    """Map core errors to distinguishable HTTP responses."""
    status = 500
    for error_cls, code in ERROR_STATUS_CODES:
        if isinstance(error, error_cls):
            status = code
            break

    payload = {"error": str(error), "kind": error.kind}
    if isinstance(error, ValidationError) and error.field:
        payload["field"] = error.field
    if isinstance(error, InvalidTransitionError):
        payload["currentStatus"] = getattr(error.current, "value", error.current)

    return jsonify(payload), status


@api_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "store": current_app.store.backend_name})


@api_bp.route("/analytics/summary", methods=["GET"])
@check_api_key
def analytics_summary():
    """Population-level summary over the last N days."""
    days = int_arg("days", default=30)
    return jsonify(population_summary(current_app.store, days=days))
