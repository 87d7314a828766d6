"""Tests for the notification dispatcher and its HTTP channels."""
import json
from datetime import date

import httpx
import pytest

from insurance_verification.models.enums import (
    NotificationChannelType,
    NotificationType,
    NotificationUrgency,
    VerificationStatus,
)
from insurance_verification.models.verification import PatientRecord, Verification
from insurance_verification.services.notification_channels import EmailChannel, SlackWebhookChannel
from insurance_verification.services.notification_service import NotificationDispatcher

from conftest import RecordingChannel


def make_verification(status=VerificationStatus.ELIGIBLE):
    return Verification(
        id="ver-001",
        patient=PatientRecord(
            first_name="Jane",
            last_name="Doe",
            date_of_birth=date(1985, 4, 12),
            insurance_company="Aetna",
            policy_number="AB12345678",
            member_id="MEM998877",
        ),
        status=status,
    )


class TestBuildNotification:

    @pytest.mark.parametrize("status,urgency", [
        (VerificationStatus.ERROR, NotificationUrgency.HIGH),
        (VerificationStatus.INELIGIBLE, NotificationUrgency.HIGH),
        (VerificationStatus.REQUIRES_AUTH, NotificationUrgency.MEDIUM),
    ])
    def test_staff_alert_urgency(self, status, urgency):
        notification = NotificationDispatcher().build_notification(make_verification(status))

        assert notification.type == NotificationType.STAFF_ALERT
        assert notification.urgency == urgency
        assert notification.channels == [NotificationChannelType.EMAIL, NotificationChannelType.CHAT]

    def test_eligible_is_a_low_urgency_patient_confirmation(self):
        notification = NotificationDispatcher().build_notification(make_verification())

        assert notification.type == NotificationType.PATIENT_CONFIRMATION
        assert notification.urgency == NotificationUrgency.LOW
        assert notification.channels == [NotificationChannelType.EMAIL]
        assert notification.message.startswith("Good news Jane!")

    def test_requires_auth_message_names_the_payer(self):
        notification = NotificationDispatcher().build_notification(
            make_verification(VerificationStatus.REQUIRES_AUTH)
        )
        assert notification.subject == "Insurance Verification Alert - REQUIRES AUTH"
        assert "initiate authorization process with Aetna" in notification.message

    def test_pending_has_no_notification(self):
        assert NotificationDispatcher().build_notification(make_verification(VerificationStatus.PENDING)) is None

    def test_summary_masks_identifiers(self):
        notification = NotificationDispatcher().build_notification(make_verification())
        assert notification.summary["policy_number"] == "AB***78"
        assert notification.summary["member_id"] == "ME***77"


class TestDispatch:

    @pytest.mark.asyncio
    async def test_one_failing_channel_does_not_block_the_other(self):
        email = RecordingChannel(NotificationChannelType.EMAIL)
        chat = RecordingChannel(NotificationChannelType.CHAT, error=RuntimeError("webhook down"))
        dispatcher = NotificationDispatcher(channels=[email, chat])

        notification = await dispatcher.dispatch(make_verification(VerificationStatus.ERROR))

        assert notification.status == "partial"
        assert len(email.sent) == 1
        failed = [d for d in notification.deliveries if not d.delivered]
        assert [(d.channel, d.error) for d in failed] == [(NotificationChannelType.CHAT, "webhook down")]
        assert dispatcher.pending_notifications == []
        assert dispatcher.sent_notifications == [notification]

    @pytest.mark.asyncio
    async def test_slow_channel_times_out(self):
        chat = RecordingChannel(NotificationChannelType.CHAT, delay=5.0)
        dispatcher = NotificationDispatcher(channels=[chat], channel_timeout=0.05)

        notification = await dispatcher.dispatch(make_verification(VerificationStatus.INELIGIBLE))

        assert notification.status == "failed"
        assert notification.deliveries[0].error == "timed out"

    @pytest.mark.asyncio
    async def test_no_enabled_channels_is_skipped(self):
        chat = RecordingChannel(NotificationChannelType.CHAT)
        dispatcher = NotificationDispatcher(channels=[chat])

        notification = await dispatcher.dispatch(make_verification())

        assert notification.status == "skipped"
        assert chat.sent == []

    @pytest.mark.asyncio
    async def test_publish_runs_in_the_background(self):
        email = RecordingChannel(NotificationChannelType.EMAIL)
        dispatcher = NotificationDispatcher(channels=[email])

        task = dispatcher.publish(make_verification())
        assert task is not None
        await dispatcher.drain()

        assert len(email.sent) == 1
        assert dispatcher.publish(make_verification(VerificationStatus.PENDING)) is None


class TestHttpChannels:

    @pytest.mark.asyncio
    async def test_email_channel_posts_payload(self):
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(202, json={"queued": True})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        channel = EmailChannel("http://mail.test/send", client=client)
        dispatcher = NotificationDispatcher(channels=[channel], staff_recipients=["ops@clinic.example"])

        notification = await dispatcher.dispatch(make_verification(VerificationStatus.ERROR))
        await client.aclose()

        assert notification.status == "sent"
        body = json.loads(captured[0].content)
        assert str(captured[0].url) == "http://mail.test/send"
        assert body["type"] == "staff_alert"
        assert body["recipients"] == ["ops@clinic.example"]
        assert body["verification"]["verification_id"] == "ver-001"

    @pytest.mark.asyncio
    async def test_slack_failure_is_recorded(self):
        email_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        slack_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        dispatcher = NotificationDispatcher(channels=[
            EmailChannel("http://mail.test/send", client=email_client),
            SlackWebhookChannel("http://hooks.test/T000", app_base_url="http://app.test", client=slack_client),
        ])

        notification = await dispatcher.dispatch(make_verification(VerificationStatus.REQUIRES_AUTH))
        await email_client.aclose()
        await slack_client.aclose()

        assert notification.status == "partial"
        delivered = {d.channel: d.delivered for d in notification.deliveries}
        assert delivered == {NotificationChannelType.EMAIL: True, NotificationChannelType.CHAT: False}

    def test_slack_blocks(self):
        channel = SlackWebhookChannel("http://hooks.test/T000", app_base_url="http://app.test/")
        notification = NotificationDispatcher().build_notification(make_verification(VerificationStatus.INELIGIBLE))

        payload = channel.build_payload(notification)

        header, fields, action_text, actions = payload["blocks"]
        assert header["text"]["text"] == "Insurance Verification Alert - HIGH"
        assert {"type": "mrkdwn", "text": "*Policy:* AB***78"} in fields["fields"]
        assert {"type": "mrkdwn", "text": "*Status:* INELIGIBLE"} in fields["fields"]
        assert action_text["text"]["text"].startswith("*Action Required:*")
        assert actions["elements"][0]["url"] == "http://app.test/?verification=ver-001"
