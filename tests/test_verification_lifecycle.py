"""Tests for the verification lifecycle."""
import asyncio

import pytest

from insurance_verification.config.settings import Settings
from insurance_verification.exceptions import (
    MalformedResponse,
    RecordNotFound,
    ServiceUnavailable,
    ValidationError,
)
from insurance_verification.models.audit import AuditFilters
from insurance_verification.models.enums import (
    AuditAction,
    NotificationType,
    NotificationUrgency,
    ResourceType,
    VerificationStatus,
)
from insurance_verification.models.verification import Coverage
from insurance_verification.reasoning.classifier_gateway import (
    Classifier,
    ClassifierGateway,
    ClassifierJudgement,
    TextGenerationError,
    TextGenerator,
    is_retryable_generation_error,
)
from insurance_verification.reasoning.fake_classifier import FakeClassifier, ScriptedTextGenerator
from insurance_verification.retry_policy import RetryPolicy
from insurance_verification.services.verification_service import (
    DEFAULT_NEXT_STEPS,
    MANUAL_REVIEW_STEPS,
    VerificationLifecycle,
)

from conftest import patient_data

SCALE = 0.01


class StallingThenRateLimited(TextGenerator):
    """Stalls past the per-attempt timeout twice, then answers 429."""

    def __init__(self):
        self.calls = 0

    @property
    def provider(self):
        return "stalling"

    async def generate(self, prompt, system_prompt=None):
        self.calls += 1
        if self.calls <= 2:
            await asyncio.sleep(10)
        raise TextGenerationError("too many requests", status_code=429)


class SlowClassifier(Classifier):
    """Never answers within any reasonable timeout."""

    async def classify(self, facts):
        await asyncio.sleep(10)


def build_lifecycle(verification_repo, classifier, audit_logger, access_controller, dispatcher=None, timeout=5.0):
    return VerificationLifecycle(
        repository=verification_repo,
        classifier=classifier,
        audit_logger=audit_logger,
        access_controller=access_controller,
        dispatcher=dispatcher,
        classifier_timeout=timeout,
    )


async def create_audits(audit_logger):
    return await audit_logger.query(AuditFilters(
        resource_type=ResourceType.VERIFICATION,
        action=AuditAction.CREATE,
    ))


class TestSubmit:

    @pytest.mark.asyncio
    async def test_eligible_submission(self, lifecycle, verification_repo, audit_logger, staff):
        verification = await lifecycle.submit(staff, patient_data())

        assert verification.status == VerificationStatus.ELIGIBLE
        assert verification.coverage.active is True
        assert verification.coverage.in_network is True
        assert verification.next_steps == DEFAULT_NEXT_STEPS[VerificationStatus.ELIGIBLE]
        assert verification.ai_insights.reasoning

        stored = await verification_repo.get(verification.id)
        assert stored.status == VerificationStatus.ELIGIBLE
        assert stored.patient.policy_number == "AB12345678"

        audits = await create_audits(audit_logger)
        assert len(audits) == 1
        assert audits[0].resource_id == verification.id
        assert audits[0].success is True
        assert audits[0].client.ip_address == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_classifier_receives_every_provided_fact(self, lifecycle, classifier, staff):
        await lifecycle.submit(staff, patient_data(subscriber_name="John Doe"))

        facts = classifier.calls[0]
        assert facts["group_number"] == "GRP100"
        assert facts["subscriber_name"] == "John Doe"
        assert facts["date_of_birth"] == "1985-04-12"

    @pytest.mark.asyncio
    async def test_invalid_input_stores_and_audits_nothing(
        self, lifecycle, verification_repo, audit_logger, classifier, staff
    ):
        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.submit(staff, patient_data(policy_number="A-1", member_id=""))

        assert set(exc_info.value.errors) == {"policy_number", "member_id"}
        assert await verification_repo.list() == []
        assert await audit_logger.query() == []
        assert classifier.calls == []

    @pytest.mark.asyncio
    async def test_ineligible_submission(self, lifecycle, staff):
        verification = await lifecycle.submit(staff, patient_data(policy_number="XX99887766"))

        assert verification.status == VerificationStatus.INELIGIBLE
        assert verification.next_steps == ["Confirm the patient's current insurance"]

    @pytest.mark.asyncio
    async def test_eligible_with_prior_auth_flag_requires_auth(
        self, verification_repo, audit_logger, access_controller, staff
    ):
        judgement = ClassifierJudgement(
            status=VerificationStatus.ELIGIBLE,
            coverage=Coverage(active=True, in_network=True, prior_auth_required=True),
            reasoning="Active, but imaging needs authorization.",
        )
        lifecycle = build_lifecycle(
            verification_repo, FakeClassifier(outcomes=[judgement]), audit_logger, access_controller
        )

        verification = await lifecycle.submit(staff, patient_data())

        assert verification.status == VerificationStatus.REQUIRES_AUTH
        assert verification.next_steps == DEFAULT_NEXT_STEPS[VerificationStatus.REQUIRES_AUTH]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [VerificationStatus.INELIGIBLE, VerificationStatus.ERROR])
    async def test_prior_auth_flag_dropped_when_not_covered(
        self, verification_repo, audit_logger, access_controller, staff, status
    ):
        judgement = ClassifierJudgement(
            status=status,
            coverage=Coverage(active=False, in_network=False, prior_auth_required=True),
            reasoning="Policy terminated last month.",
        )
        lifecycle = build_lifecycle(
            verification_repo, FakeClassifier(outcomes=[judgement]), audit_logger, access_controller
        )

        verification = await lifecycle.submit(staff, patient_data())

        assert verification.status == status
        assert verification.coverage.prior_auth_required is False
        stored = await verification_repo.get(verification.id)
        assert stored.coverage.prior_auth_required is False


class TestClassifierFailures:

    @pytest.mark.asyncio
    async def test_rate_limited_classifier_ends_in_error(
        self, verification_repo, audit_logger, access_controller, staff
    ):
        async def no_sleep(seconds):
            return None

        generator = ScriptedTextGenerator([
            TextGenerationError("timed out", timed_out=True),
            TextGenerationError("timed out", timed_out=True),
            TextGenerationError("too many requests", status_code=429),
        ])
        gateway = ClassifierGateway(
            generator,
            retry_policy=RetryPolicy(
                max_attempts=3,
                backoff_base=2.0,
                retryable=is_retryable_generation_error,
                sleep=no_sleep,
            ),
        )
        lifecycle = build_lifecycle(verification_repo, gateway, audit_logger, access_controller)

        verification = await lifecycle.submit(staff, patient_data())

        assert verification.status == VerificationStatus.ERROR
        assert "rate limit" in verification.ai_insights.reasoning
        assert verification.ai_insights.reasoning.startswith("AI verification temporarily unavailable")
        assert verification.coverage == Coverage.unavailable()
        assert verification.next_steps == MANUAL_REVIEW_STEPS
        assert len(generator.prompts) == 3

        stored = await verification_repo.get(verification.id)
        assert stored.status == VerificationStatus.ERROR
        assert len(await create_audits(audit_logger)) == 1

    @pytest.mark.asyncio
    async def test_default_budget_reaches_the_final_attempt(
        self, verification_repo, audit_logger, access_controller, staff
    ):
        # Default timing scaled down; two stalled attempts then a 429
        defaults = Settings(_env_file=None)
        generator = StallingThenRateLimited()
        gateway = ClassifierGateway(
            generator,
            retry_policy=RetryPolicy(
                max_attempts=defaults.classifier_max_attempts,
                backoff_base=defaults.classifier_backoff_base_seconds * SCALE,
                retryable=is_retryable_generation_error,
            ),
            request_timeout=defaults.classifier_request_timeout_seconds * SCALE,
        )
        lifecycle = build_lifecycle(
            verification_repo,
            gateway,
            audit_logger,
            access_controller,
            timeout=defaults.classifier_budget_seconds * SCALE,
        )

        verification = await lifecycle.submit(staff, patient_data())

        assert gateway.worst_case_seconds == pytest.approx(defaults.classifier_budget_seconds * SCALE)
        assert generator.calls == 3
        assert verification.status == VerificationStatus.ERROR
        assert "rate limit" in verification.ai_insights.reasoning

    @pytest.mark.asyncio
    async def test_timeout_ends_in_error(self, verification_repo, audit_logger, access_controller, staff):
        lifecycle = build_lifecycle(
            verification_repo, SlowClassifier(), audit_logger, access_controller, timeout=0.05
        )

        verification = await lifecycle.submit(staff, patient_data())

        assert verification.status == VerificationStatus.ERROR
        assert "timed out" in verification.ai_insights.reasoning

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ServiceUnavailable("AI service failed (503): unavailable"),
        MalformedResponse("AI response is missing required keys: status"),
        RuntimeError("boom"),
    ])
    async def test_classifier_errors_never_escape(
        self, verification_repo, audit_logger, access_controller, staff, error
    ):
        lifecycle = build_lifecycle(
            verification_repo, FakeClassifier(outcomes=[error]), audit_logger, access_controller
        )

        verification = await lifecycle.submit(staff, patient_data())

        assert verification.status == VerificationStatus.ERROR
        assert verification.ai_insights.clarifying_questions == [
            "Please confirm all insurance details are correct"
        ]

    @pytest.mark.asyncio
    async def test_store_failure_is_audited_and_raised(
        self, lifecycle, verification_repo, audit_logger, staff, monkeypatch
    ):
        async def broken_create(verification):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(verification_repo, "create", broken_create)

        with pytest.raises(RuntimeError):
            await lifecycle.submit(staff, patient_data())

        audits = await create_audits(audit_logger)
        assert len(audits) == 1
        assert audits[0].success is False
        assert "database is locked" in audits[0].error_message


class TestNotifications:

    @pytest.mark.asyncio
    async def test_eligible_sends_patient_confirmation(self, lifecycle, dispatcher, email_channel, chat_channel, staff):
        verification = await lifecycle.submit(staff, patient_data())
        await dispatcher.drain()

        assert len(email_channel.sent) == 1
        assert chat_channel.sent == []
        notification = email_channel.sent[0]
        assert notification.type == NotificationType.PATIENT_CONFIRMATION
        assert notification.urgency == NotificationUrgency.LOW
        assert notification.verification_id == verification.id
        assert notification.subject == "Appointment Confirmation - Jane Doe"

    @pytest.mark.asyncio
    async def test_requires_auth_alerts_staff_on_every_channel(
        self, lifecycle, dispatcher, email_channel, chat_channel, staff
    ):
        await lifecycle.submit(staff, patient_data(policy_number="PA12345678"))
        await dispatcher.drain()

        assert len(email_channel.sent) == 1
        assert len(chat_channel.sent) == 1
        alert = chat_channel.sent[0]
        assert alert.type == NotificationType.STAFF_ALERT
        assert alert.urgency == NotificationUrgency.MEDIUM
        assert alert.recipients == ["frontdesk@clinic.example"]

    @pytest.mark.asyncio
    async def test_channel_failure_does_not_affect_submission(
        self, lifecycle, dispatcher, email_channel, chat_channel, staff
    ):
        chat_channel.error = RuntimeError("webhook unreachable")

        verification = await lifecycle.submit(staff, patient_data(policy_number="XX12345678"))
        await dispatcher.drain()

        assert verification.status == VerificationStatus.INELIGIBLE
        notification = dispatcher.sent_notifications[0]
        assert notification.status == "partial"
        assert len(email_channel.sent) == 1


class TestReads:

    @pytest.mark.asyncio
    async def test_get_audits_the_view(self, lifecycle, audit_logger, staff):
        created = await lifecycle.submit(staff, patient_data())

        fetched = await lifecycle.get(staff, created.id)

        assert fetched.id == created.id
        views = await audit_logger.query(AuditFilters(action=AuditAction.VIEW))
        assert [v.resource_id for v in views] == [created.id]

    @pytest.mark.asyncio
    async def test_get_missing_verification(self, lifecycle, staff):
        with pytest.raises(RecordNotFound):
            await lifecycle.get(staff, "does-not-exist")

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, lifecycle, staff):
        await lifecycle.submit(staff, patient_data())
        await lifecycle.submit(staff, patient_data(policy_number="XX12345678"))

        ineligible = await lifecycle.list(staff, status=VerificationStatus.INELIGIBLE)
        everything = await lifecycle.list(staff)

        assert [v.status for v in ineligible] == [VerificationStatus.INELIGIBLE]
        assert len(everything) == 2
