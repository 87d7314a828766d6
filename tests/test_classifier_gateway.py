"""Tests for judgement parsing and the classifier gateway retry behavior."""
import json

import pytest

from insurance_verification.exceptions import MalformedResponse, RateLimitExceeded, ServiceUnavailable
from insurance_verification.models.enums import VerificationStatus
from insurance_verification.reasoning.classifier_gateway import (
    ClassifierGateway,
    TextGenerationError,
    format_patient_facts,
    is_retryable_generation_error,
    parse_judgement,
)
from insurance_verification.reasoning.fake_classifier import ScriptedTextGenerator
from insurance_verification.retry_policy import RetryPolicy

ELIGIBLE_RESPONSE = {
    "status": "eligible",
    "coverage": {
        "active": True,
        "effectiveDate": "2026-01-01",
        "terminationDate": None,
        "copay": 25,
        "deductible": 500.0,
        "inNetwork": True,
        "priorAuthRequired": False,
    },
    "reasoning": "Coverage is active.",
    "recommendations": ["Confirm appointment"],
    "clarifyingQuestions": [],
}


def response_text(**overrides):
    data = dict(ELIGIBLE_RESPONSE)
    data.update(overrides)
    return json.dumps(data)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry_policy(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)

    return RetryPolicy(
        max_attempts=3,
        backoff_base=2.0,
        retryable=is_retryable_generation_error,
        sleep=_sleep,
        name="classifier",
    )


class TestParseJudgement:

    def test_parses_fenced_json(self):
        judgement = parse_judgement(f"Here you go:\n```json\n{response_text()}\n```")

        assert judgement.status == VerificationStatus.ELIGIBLE
        assert judgement.coverage.active is True
        assert judgement.coverage.copay == 25.0
        assert judgement.coverage.effective_date.isoformat() == "2026-01-01"
        assert judgement.coverage.termination_date is None
        assert judgement.recommendations == ["Confirm appointment"]

    def test_additional_questions_alias(self):
        data = dict(ELIGIBLE_RESPONSE)
        del data["clarifyingQuestions"]
        data["additionalQuestions"] = ["Is the subscriber the patient?"]

        judgement = parse_judgement(json.dumps(data))
        assert judgement.clarifying_questions == ["Is the subscriber the patient?"]

    def test_optional_lists_default_to_empty(self):
        data = {k: v for k, v in ELIGIBLE_RESPONSE.items() if k in ("status", "coverage", "reasoning")}

        judgement = parse_judgement(json.dumps(data))
        assert judgement.recommendations == []
        assert judgement.clarifying_questions == []

    def test_unparseable_date_is_dropped(self):
        coverage = dict(ELIGIBLE_RESPONSE["coverage"], effectiveDate="sometime soon")
        judgement = parse_judgement(response_text(coverage=coverage))
        assert judgement.coverage.effective_date is None

    @pytest.mark.parametrize("text", [
        "I could not verify this patient.",
        json.dumps({"status": "eligible", "coverage": {}}),
        response_text(status="approved"),
        response_text(coverage="active"),
        response_text(coverage=dict(ELIGIBLE_RESPONSE["coverage"], active="yes")),
        response_text(coverage=dict(ELIGIBLE_RESPONSE["coverage"], copay=-5)),
        response_text(coverage=dict(ELIGIBLE_RESPONSE["coverage"], deductible="500")),
    ])
    def test_malformed_output_is_rejected(self, text):
        with pytest.raises(MalformedResponse):
            parse_judgement(text)


class TestFormatPatientFacts:

    def test_every_fact_is_labelled(self):
        text = format_patient_facts({
            "first_name": "Jane",
            "policy_number": "AB12345678",
            "group_number": "GRP100",
            "plan_type": "PPO",
        })

        assert "First Name: Jane" in text
        assert "Policy: AB12345678" in text
        assert "Group: GRP100" in text
        assert "Plan Type: PPO" in text

    def test_empty_values_are_skipped(self):
        assert format_patient_facts({"first_name": "Jane", "group_number": None}) == "First Name: Jane"


class TestClassifierGateway:

    @pytest.mark.asyncio
    async def test_prompt_carries_patient_facts(self, retry_policy):
        generator = ScriptedTextGenerator([response_text()])
        gateway = ClassifierGateway(generator, retry_policy=retry_policy)

        await gateway.classify({"first_name": "Jane", "subscriber_name": "John Doe"})

        assert "First Name: Jane" in generator.prompts[0]
        assert "Subscriber: John Doe" in generator.prompts[0]
        assert "{patient_facts}" not in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, retry_policy, sleeps):
        generator = ScriptedTextGenerator([
            TextGenerationError("unavailable", status_code=503),
            response_text(),
        ])
        gateway = ClassifierGateway(generator, retry_policy=retry_policy)

        judgement = await gateway.classify({"first_name": "Jane"})

        assert judgement.status == VerificationStatus.ELIGIBLE
        assert len(generator.prompts) == 2
        assert sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_rate_limit_on_final_attempt(self, retry_policy, sleeps):
        generator = ScriptedTextGenerator([
            TextGenerationError("timed out", timed_out=True),
            TextGenerationError("timed out", timed_out=True),
            TextGenerationError("too many requests", status_code=429),
        ])
        gateway = ClassifierGateway(generator, retry_policy=retry_policy)

        with pytest.raises(RateLimitExceeded, match="rate limit exceeded after 3 attempts"):
            await gateway.classify({"first_name": "Jane"})
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_persistent_outage_is_service_unavailable(self, retry_policy):
        generator = ScriptedTextGenerator([TextGenerationError("bad gateway", status_code=502)] * 3)
        gateway = ClassifierGateway(generator, retry_policy=retry_policy)

        with pytest.raises(ServiceUnavailable):
            await gateway.classify({"first_name": "Jane"})
        assert len(generator.prompts) == 3

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, retry_policy):
        generator = ScriptedTextGenerator([TextGenerationError("unauthorized", status_code=401)])
        gateway = ClassifierGateway(generator, retry_policy=retry_policy)

        with pytest.raises(ServiceUnavailable):
            await gateway.classify({"first_name": "Jane"})
        assert len(generator.prompts) == 1

    @pytest.mark.asyncio
    async def test_malformed_output_is_not_retried(self, retry_policy):
        generator = ScriptedTextGenerator(["not json at all"])
        gateway = ClassifierGateway(generator, retry_policy=retry_policy)

        with pytest.raises(MalformedResponse):
            await gateway.classify({"first_name": "Jane"})
        assert len(generator.prompts) == 1
