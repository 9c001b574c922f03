"""Flask application factory for the BP monitoring dashboard API."""

import logging
import os

from flask import Flask

from rpm_common.alerting import AlertingPipeline
from rpm_common.channels import TeamsWebhookChannel
from rpm_common.ingest import ReadingIngestor
from rpm_common.lifecycle import AlertLifecycle
from rpm_common.store import create_store

from .config import get_config


def create_app(config=None):
    """Create and configure the Flask application.

    Args:
        config: Optional configuration object or dict

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Load configuration
    if config is None:
        config = get_config()

    if isinstance(config, dict):
        app.config.from_object(get_config())
        app.config.update(config)
    else:
        app.config.from_object(config)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Storage backend is chosen once, here
    store = app.config.get("STORE")
    if store is None:
        store = create_store(
            backend=app.config.get("STORE_BACKEND", "sqlite"),
            db_path=app.config.get("DB_PATH"),
        )
    app.store = store

    notifier = None
    if app.config.get("TEAMS_WEBHOOK_URL"):
        notifier = TeamsWebhookChannel(
            app.config["TEAMS_WEBHOOK_URL"],
            dashboard_url=app.config.get("DASHBOARD_BASE_URL", ""),
        )

    app.alerting = AlertingPipeline(store, notifier=notifier)
    app.ingestor = ReadingIngestor(store, pipeline=app.alerting)
    app.lifecycle = AlertLifecycle(store)

    # Register blueprints
    from .routes import api_bp, alerts_bp, readings_bp, patients_bp, notes_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(alerts_bp, url_prefix="/api/alerts")
    app.register_blueprint(readings_bp, url_prefix="/api")
    app.register_blueprint(patients_bp, url_prefix="/api/patients")
    app.register_blueprint(notes_bp, url_prefix="/api/notes")

    app.logger.info(f"Dashboard API started with {store.backend_name} store")
    return app


def run_dev_server():
    """Run development server."""
    app = create_app()
    app.run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 5000)),
        debug=app.config.get("DEBUG", False),
    )


if __name__ == "__main__":
    run_dev_server()
