"""Dashboard API routes."""

from .api import api_bp
from .alerts import alerts_bp
from .readings import readings_bp
from .patients import patients_bp
from .notes import notes_bp

__all__ = [
    "api_bp",
    "alerts_bp",
    "readings_bp",
    "patients_bp",
    "notes_bp",
]
