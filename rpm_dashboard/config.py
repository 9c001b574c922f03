"""Dashboard configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


class Config:
    """Base configuration."""

    # Flask
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-change-in-production")
    DEBUG = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    TESTING = False

    # Dashboard
    DASHBOARD_BASE_URL = os.environ.get("DASHBOARD_BASE_URL", "http://localhost:5000")
    DASHBOARD_API_KEY = os.environ.get("DASHBOARD_API_KEY", "")

    # Storage: "sqlite" (persistent) or "memory" (demo / tests)
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sqlite")
    DB_PATH = os.environ.get(
        "RPM_DB_PATH",
        os.path.expanduser("~/.rpm/monitoring.db")
    )

    # Stand-in for the signed-in clinician until auth is wired up
    DEFAULT_CLINICIAN_ID = os.environ.get("DEFAULT_CLINICIAN_ID", "clinician-001")
    DEFAULT_CLINICIAN_NAME = os.environ.get("DEFAULT_CLINICIAN_NAME", "Dr. Sarah Chen")

    # Teams notifications for newly raised alerts
    TEAMS_WEBHOOK_URL = os.environ.get("TEAMS_WEBHOOK_URL", "")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration: in-memory store, no webhooks."""
    TESTING = True
    STORE_BACKEND = "memory"
    DASHBOARD_API_KEY = ""
    TEAMS_WEBHOOK_URL = ""


def get_config():
    """Get configuration based on environment."""
    env = os.environ.get("FLASK_ENV", "development")
    if env == "production":
        return ProductionConfig()
    if env == "testing":
        return TestingConfig()
    return DevelopmentConfig()
