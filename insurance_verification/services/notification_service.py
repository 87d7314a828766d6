"""Notification dispatcher reacting to resolved verifications."""
import asyncio
from typing import Dict, List, Optional, Sequence, Set

from insurance_verification.models.enums import (
    NotificationChannelType,
    NotificationType,
    NotificationUrgency,
    VerificationStatus,
)
from insurance_verification.models.notification import ChannelDelivery, Notification
from insurance_verification.models.verification import Verification
from insurance_verification.services.notification_channels import NotificationChannel
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

STAFF_ALERT_URGENCY: Dict[VerificationStatus, NotificationUrgency] = {
    VerificationStatus.ERROR: NotificationUrgency.HIGH,
    VerificationStatus.INELIGIBLE: NotificationUrgency.HIGH,
    VerificationStatus.REQUIRES_AUTH: NotificationUrgency.MEDIUM,
}


def staff_message(verification: Verification) -> str:
    patient = verification.patient.full_name
    status = verification.status
    if status == VerificationStatus.INELIGIBLE:
        return (
            f"Patient {patient} has ineligible insurance coverage. "
            f"Contact patient about payment options and coverage verification."
        )
    if status == VerificationStatus.REQUIRES_AUTH:
        return (
            f"Prior authorization required for {patient}. "
            f"Please initiate authorization process with {verification.patient.insurance_company}."
        )
    if status == VerificationStatus.ERROR:
        return f"Verification failed for {patient}. Manual verification required. Check patient information and retry."
    return f"Manual review needed for {patient}."


def patient_message(verification: Verification) -> str:
    first_name = verification.patient.first_name
    if verification.status == VerificationStatus.ELIGIBLE:
        return (
            f"Good news {first_name}! Your insurance verification is complete "
            f"and your appointment is confirmed. We'll see you soon!"
        )
    return (
        f"Hello {first_name}, we need to discuss your insurance coverage. "
        f"Please contact our office at your earliest convenience."
    )


class NotificationDispatcher:
    """
    Fans resolved verifications out to delivery channels.

    Eligible verifications queue a patient confirmation (email channels
    only); ineligible, requires_auth and error queue a staff alert on every
    channel. Each channel runs as its own task under a timeout; failures
    are logged and recorded on the notification, never raised.
    """

    def __init__(
        self,
        channels: Sequence[NotificationChannel] = (),
        staff_recipients: Sequence[str] = (),
        channel_timeout: float = 10.0,
    ):
        """
        Initialize the dispatcher.

        Args:
            channels: Enabled delivery channels
            staff_recipients: Email recipients for staff alerts
            channel_timeout: Per-channel delivery timeout in seconds
        """
        self.channels = list(channels)
        self.staff_recipients = list(staff_recipients)
        self.channel_timeout = channel_timeout
        self._pending_notifications: List[Notification] = []
        self._sent_notifications: List[Notification] = []
        self._tasks: Set[asyncio.Task] = set()
        logger.info(
            "Notification dispatcher initialized",
            channels=[c.channel_type.value for c in self.channels],
        )

    @property
    def pending_notifications(self) -> List[Notification]:
        return list(self._pending_notifications)

    @property
    def sent_notifications(self) -> List[Notification]:
        return list(self._sent_notifications)

    def build_notification(self, verification: Verification) -> Optional[Notification]:
        """Build the notification for a resolved verification, or None for pending."""
        status = verification.status
        if status == VerificationStatus.PENDING:
            return None

        patient = verification.patient
        if status == VerificationStatus.ELIGIBLE:
            return Notification(
                type=NotificationType.PATIENT_CONFIRMATION,
                urgency=NotificationUrgency.LOW,
                verification_id=verification.id,
                subject=f"Appointment Confirmation - {patient.first_name} {patient.last_name}",
                message=patient_message(verification),
                recipients=[patient.full_name],
                summary=verification.summary(),
                channels=[NotificationChannelType.EMAIL],
            )

        return Notification(
            type=NotificationType.STAFF_ALERT,
            urgency=STAFF_ALERT_URGENCY[status],
            verification_id=verification.id,
            subject=f"Insurance Verification Alert - {status.value.replace('_', ' ').upper()}",
            message=staff_message(verification),
            recipients=list(self.staff_recipients),
            summary=verification.summary(),
            channels=[NotificationChannelType.EMAIL, NotificationChannelType.CHAT],
        )

    def publish(self, verification: Verification) -> Optional[asyncio.Task]:
        """
        Queue delivery in the background and return immediately.

        Returns:
            The delivery task, or None when there is nothing to send
        """
        if verification.status == VerificationStatus.PENDING:
            return None
        task = asyncio.get_running_loop().create_task(self.dispatch(verification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def dispatch(self, verification: Verification) -> Optional[Notification]:
        """Build and deliver the notification for a verification. Never raises."""
        try:
            notification = self.build_notification(verification)
        except Exception as e:
            logger.error("Failed to build notification", verification_id=verification.id, error=str(e))
            return None
        if notification is None:
            return None

        self._pending_notifications.append(notification)
        targets = [c for c in self.channels if c.channel_type in notification.channels]
        if not targets:
            notification.status = "skipped"
            logger.info("No notification channels enabled", notification_id=notification.id)
        else:
            results = await asyncio.gather(
                *(self._deliver(channel, notification) for channel in targets),
                return_exceptions=True,
            )
            for channel, result in zip(targets, results):
                if isinstance(result, ChannelDelivery):
                    notification.deliveries.append(result)
                else:
                    notification.deliveries.append(ChannelDelivery(
                        channel=channel.channel_type, delivered=False, error=str(result),
                    ))
            delivered = sum(1 for d in notification.deliveries if d.delivered)
            if delivered == len(notification.deliveries):
                notification.status = "sent"
            elif delivered:
                notification.status = "partial"
            else:
                notification.status = "failed"

        self._pending_notifications.remove(notification)
        self._sent_notifications.append(notification)
        logger.info(
            "Notification dispatched",
            notification_id=notification.id,
            type=notification.type.value,
            urgency=notification.urgency.value,
            status=notification.status,
        )
        return notification

    async def _deliver(self, channel: NotificationChannel, notification: Notification) -> ChannelDelivery:
        try:
            await asyncio.wait_for(channel.send(notification), timeout=self.channel_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Notification channel timed out",
                channel=channel.channel_type.value,
                notification_id=notification.id,
            )
            return ChannelDelivery(channel=channel.channel_type, delivered=False, error="timed out")
        except Exception as e:
            logger.warning(
                "Notification channel failed",
                channel=channel.channel_type.value,
                notification_id=notification.id,
                error=str(e),
            )
            return ChannelDelivery(channel=channel.channel_type, delivered=False, error=str(e))
        return ChannelDelivery(channel=channel.channel_type, delivered=True)

    async def drain(self) -> None:
        """Wait for every queued delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        for channel in self.channels:
            await channel.close()
