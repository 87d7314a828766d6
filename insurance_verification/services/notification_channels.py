"""Email and chat webhook delivery channels."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from insurance_verification.models.enums import NotificationChannelType
from insurance_verification.models.notification import Notification
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)


class NotificationChannel(ABC):
    """A delivery channel. ``send`` raises on failure; the dispatcher contains it."""

    @property
    @abstractmethod
    def channel_type(self) -> NotificationChannelType:
        pass

    @abstractmethod
    async def send(self, notification: Notification) -> None:
        pass

    async def close(self) -> None:
        return None


class EmailChannel(NotificationChannel):
    """Posts notifications to an email-sending service."""

    def __init__(
        self,
        service_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.service_url = service_url
        self._owns_client = client is None
        self._http_client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def channel_type(self) -> NotificationChannelType:
        return NotificationChannelType.EMAIL

    def build_payload(self, notification: Notification) -> Dict[str, Any]:
        return {
            "type": notification.type.value,
            "recipients": notification.recipients,
            "subject": notification.subject,
            "message": notification.message,
            "verification": notification.summary,
        }

    async def send(self, notification: Notification) -> None:
        response = await self._http_client.post(self.service_url, json=self.build_payload(notification))
        response.raise_for_status()
        logger.debug("Email notification accepted", notification_id=notification.id)

    async def close(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()


class SlackWebhookChannel(NotificationChannel):
    """Posts Slack block-kit messages to an incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        app_base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.webhook_url = webhook_url
        self.app_base_url = app_base_url.rstrip("/")
        self._owns_client = client is None
        self._http_client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def channel_type(self) -> NotificationChannelType:
        return NotificationChannelType.CHAT

    def details_url(self, verification_id: str) -> str:
        return f"{self.app_base_url}/?verification={verification_id}"

    def build_payload(self, notification: Notification) -> Dict[str, Any]:
        summary = notification.summary
        status = str(summary.get("status", "")).replace("_", " ").upper()
        return {
            "text": "Insurance Verification Alert",
            "blocks": [
                {
                    "type": "header",
                    "text": {
                        "type": "plain_text",
                        "text": f"Insurance Verification Alert - {notification.urgency.value.upper()}",
                    },
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Patient:* {summary.get('patient_name', '')}"},
                        {"type": "mrkdwn", "text": f"*Status:* {status}"},
                        {"type": "mrkdwn", "text": f"*Insurance:* {summary.get('insurance_company', '')}"},
                        {"type": "mrkdwn", "text": f"*Policy:* {summary.get('policy_number', '')}"},
                    ],
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": f"*Action Required:*\n{notification.message}"},
                },
                {
                    "type": "actions",
                    "elements": [
                        {
                            "type": "button",
                            "text": {"type": "plain_text", "text": "View Details"},
                            "url": self.details_url(notification.verification_id),
                        }
                    ],
                },
            ],
        }

    async def send(self, notification: Notification) -> None:
        response = await self._http_client.post(self.webhook_url, json=self.build_payload(notification))
        response.raise_for_status()
        logger.debug("Slack notification accepted", notification_id=notification.id)

    async def close(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()
