"""Notification channels for new alerts."""

from .teams import (
    TeamsWebhookChannel,
    TeamsMessage,
    TeamsAction,
    build_alert_message,
)

__all__ = [
    "TeamsWebhookChannel",
    "TeamsMessage",
    "TeamsAction",
    "build_alert_message",
]
