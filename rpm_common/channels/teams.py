"""Microsoft Teams webhook channel (Workflows / Power Automate version).

Posts an Adaptive Card to a Teams channel when a new BP alert is raised.

Setup:
1. In Teams channel, click ... > Workflows
2. Search "Post to a channel when a webhook request is received"
3. Select team/channel and create
4. Copy the webhook URL into TEAMS_WEBHOOK_URL
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

import requests

from ..models import Alert, AlertSeverity

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    AlertSeverity.CRITICAL: "Attention",
    AlertSeverity.WARNING: "Warning",
    AlertSeverity.INFO: "Accent",
}


@dataclass
class TeamsAction:
    """Action button for Teams Adaptive Card."""
    title: str
    url: str


@dataclass
class TeamsMessage:
    """Teams message content using Adaptive Card format."""
    title: str
    facts: list[tuple[str, str]] = field(default_factory=list)
    text: str | None = None
    color: str = "Attention"  # Good, Attention, Warning, Accent, Default
    actions: list[TeamsAction] = field(default_factory=list)


def build_alert_message(alert: Alert, dashboard_url: str = "") -> TeamsMessage:
    """Build the Teams message for a newly raised alert."""
    facts = [
        ("Patient", f"{alert.patient_name} ({alert.patient_id})"),
        ("Reading", f"{alert.trigger_value} mmHg" if alert.trigger_value else "n/a"),
        ("Severity", alert.severity.value.upper()),
        ("Raised", alert.created_at.strftime("%Y-%m-%d %H:%M")),
    ]

    actions = []
    if dashboard_url:
        actions.append(TeamsAction(
            title="View Alert",
            url=f"{dashboard_url.rstrip('/')}/api/alerts/{alert.id}",
        ))

    return TeamsMessage(
        title=alert.title,
        facts=facts,
        text=alert.description,
        color=SEVERITY_COLORS.get(alert.severity, "Default"),
        actions=actions,
    )


class TeamsWebhookChannel:
    """Send messages to Microsoft Teams via Workflows webhook."""

    def __init__(self, webhook_url: str | None, dashboard_url: str = "", timeout: float = 10.0):
        """
        Initialize Teams webhook channel.

        Args:
            webhook_url: The Workflows webhook URL from Teams
            dashboard_url: Base URL used for "View Alert" links
            timeout: HTTP timeout in seconds
        """
        self.webhook_url = webhook_url
        self.dashboard_url = dashboard_url
        self.timeout = timeout

    def is_configured(self) -> bool:
        """Check if Teams webhook is configured."""
        return bool(self.webhook_url)

    def _build_adaptive_card(self, message: TeamsMessage) -> dict:
        """Build an Adaptive Card wrapped in the Workflows message envelope."""
        body = [
            {
                "type": "TextBlock",
                "text": message.title,
                "weight": "Bolder",
                "size": "Large",
                "color": message.color,
                "wrap": True,
            }
        ]

        if message.facts:
            body.append({
                "type": "FactSet",
                "facts": [{"title": k, "value": v} for k, v in message.facts],
            })

        if message.text:
            body.append({"type": "TextBlock", "text": message.text, "wrap": True})

        body.append({
            "type": "TextBlock",
            "text": f"Sent: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "size": "Small",
            "isSubtle": True,
        })

        card = {
            "type": "AdaptiveCard",
            "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
            "version": "1.4",
            "body": body,
        }

        if message.actions:
            card["actions"] = [
                {"type": "Action.OpenUrl", "title": a.title, "url": a.url}
                for a in message.actions
            ]

        return {
            "type": "message",
            "attachments": [
                {
                    "contentType": "application/vnd.microsoft.card.adaptive",
                    "contentUrl": None,
                    "content": card,
                }
            ],
        }

    def send(self, message: TeamsMessage) -> bool:
        """
        Send a message to Teams.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.is_configured():
            logger.warning("Teams webhook not configured")
            return False

        payload = self._build_adaptive_card(message)

        try:
            response = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Teams webhook request failed: {e}")
            return False

        if response.status_code in (200, 202):
            logger.info("Teams message sent")
            return True

        logger.error(f"Teams webhook returned {response.status_code}: {response.text[:200]}")
        return False

    def notify_new_alert(self, alert: Alert) -> bool:
        """Post a card for a newly raised alert."""
        return self.send(build_alert_message(alert, self.dashboard_url))
