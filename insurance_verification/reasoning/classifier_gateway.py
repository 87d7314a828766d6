"""Classifier gateway: patient facts in, structured eligibility judgement out.

This is the only layer that knows a text-generation vendor is involved.
Vendor clients implement ``TextGenerator``; the gateway owns prompt
construction, the retry policy and response parsing.
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from insurance_verification.exceptions import (
    ClassifierError,
    MalformedResponse,
    RateLimitExceeded,
    ServiceUnavailable,
)
from insurance_verification.models.enums import VerificationStatus
from insurance_verification.models.verification import Coverage
from insurance_verification.reasoning.json_utils import extract_json_from_text
from insurance_verification.reasoning.prompt_loader import PromptLoader, get_prompt_loader
from insurance_verification.retry_policy import RetryPolicy
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

ELIGIBILITY_PROMPT = "verification/eligibility_check.txt"
SYSTEM_PROMPT = "verification/system.txt"

JUDGEMENT_STATUSES = frozenset({
    VerificationStatus.ELIGIBLE,
    VerificationStatus.INELIGIBLE,
    VerificationStatus.REQUIRES_AUTH,
    VerificationStatus.ERROR,
})

FACT_LABELS = {
    "first_name": "First Name",
    "last_name": "Last Name",
    "date_of_birth": "DOB",
    "insurance_company": "Insurance",
    "policy_number": "Policy",
    "member_id": "Member ID",
    "group_number": "Group",
    "subscriber_name": "Subscriber",
}


class TextGenerationError(Exception):
    """
    Vendor-neutral transport failure.

    ``status_code`` carries the HTTP status (429, 5xx, ...) when the vendor
    reported one; ``timed_out`` marks request timeouts.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, timed_out: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_transient(self) -> bool:
        return self.timed_out or self.is_rate_limited or (self.status_code is not None and self.status_code >= 500)


class TextGenerator(ABC):
    """A text-generation endpoint."""

    @property
    @abstractmethod
    def provider(self) -> str:
        pass

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate text for a prompt.

        Raises:
            TextGenerationError: On any transport or vendor failure
        """
        pass

    async def close(self) -> None:
        return None


class ClassifierJudgement(BaseModel):
    """Structured eligibility judgement."""
    status: VerificationStatus
    coverage: Coverage
    reasoning: str
    recommendations: List[str] = Field(default_factory=list)
    clarifying_questions: List[str] = Field(default_factory=list)


class Classifier(ABC):
    """Narrow interface the lifecycle depends on."""

    @abstractmethod
    async def classify(self, facts: Mapping[str, Any]) -> ClassifierJudgement:
        """
        Classify patient/insurance facts.

        Raises:
            RateLimitExceeded, ServiceUnavailable, MalformedResponse
        """
        pass

    async def close(self) -> None:
        return None


def is_retryable_generation_error(error: BaseException) -> bool:
    """Retry 429s, 5xx responses and timeouts."""
    return isinstance(error, TextGenerationError) and error.is_transient


def format_patient_facts(facts: Mapping[str, Any]) -> str:
    """Render every provided fact as a labelled line; unknown keys are kept too."""
    lines = []
    for key, value in facts.items():
        if value is None or value == "":
            continue
        label = FACT_LABELS.get(key, key.replace("_", " ").title())
        lines.append(f"{label}: {value}")
    return "\n".join(lines)


def _parse_bool(coverage: Mapping[str, Any], key: str) -> bool:
    value = coverage.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise MalformedResponse(f"coverage.{key} must be a boolean, got {value!r}")
    return value


def _parse_amount(coverage: Mapping[str, Any], key: str) -> Optional[float]:
    value = coverage.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponse(f"coverage.{key} must be a number or null, got {value!r}")
    if value < 0:
        raise MalformedResponse(f"coverage.{key} must be non-negative, got {value!r}")
    return float(value)


def _parse_date(coverage: Mapping[str, Any], key: str) -> Optional[date]:
    value = coverage.get(key)
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.debug("Ignoring unparseable coverage date", field=key, value=value)
        return None


def _parse_string_list(data: Mapping[str, Any], *keys: str) -> List[str]:
    for key in keys:
        if key in data and data[key] is not None:
            value = data[key]
            if not isinstance(value, list):
                raise MalformedResponse(f"{key} must be an array")
            return [str(item) for item in value if item is not None and str(item).strip()]
    return []


def parse_judgement(text: str) -> ClassifierJudgement:
    """
    Parse model output into a judgement.

    Code fences are stripped before parsing. ``status``, ``coverage`` and
    ``reasoning`` are required; ``recommendations`` and
    ``clarifyingQuestions`` (alias ``additionalQuestions``) default to empty.

    Raises:
        MalformedResponse: If the output does not match the schema
    """
    try:
        data = extract_json_from_text(text)
    except ValueError as e:
        raise MalformedResponse(f"AI response could not be parsed: {e}") from e

    missing = [key for key in ("status", "coverage", "reasoning") if key not in data]
    if missing:
        raise MalformedResponse(f"AI response is missing required keys: {', '.join(missing)}")

    try:
        status = VerificationStatus(str(data["status"]).strip().lower())
    except ValueError:
        status = None
    if status not in JUDGEMENT_STATUSES:
        raise MalformedResponse(f"AI response has invalid status: {data['status']!r}")

    coverage_data = data["coverage"]
    if not isinstance(coverage_data, dict):
        raise MalformedResponse("AI response coverage must be an object")

    reasoning = data["reasoning"]
    if not isinstance(reasoning, str):
        raise MalformedResponse("AI response reasoning must be a string")

    coverage = Coverage(
        active=_parse_bool(coverage_data, "active"),
        in_network=_parse_bool(coverage_data, "inNetwork"),
        effective_date=_parse_date(coverage_data, "effectiveDate"),
        termination_date=_parse_date(coverage_data, "terminationDate"),
        copay=_parse_amount(coverage_data, "copay"),
        deductible=_parse_amount(coverage_data, "deductible"),
        prior_auth_required=_parse_bool(coverage_data, "priorAuthRequired"),
    )

    return ClassifierJudgement(
        status=status,
        coverage=coverage,
        reasoning=reasoning.strip(),
        recommendations=_parse_string_list(data, "recommendations"),
        clarifying_questions=_parse_string_list(data, "clarifyingQuestions", "additionalQuestions"),
    )


class ClassifierGateway(Classifier):
    """
    Classifier backed by a text-generation vendor.

    Transient failures (429, 5xx, timeouts) are retried under the retry
    policy. A 429 on the final attempt raises RateLimitExceeded; any other
    transport failure raises ServiceUnavailable; unusable output raises
    MalformedResponse.

    ``request_timeout`` bounds each attempt so the whole call stays within
    ``worst_case_seconds``.
    """

    def __init__(
        self,
        generator: TextGenerator,
        retry_policy: Optional[RetryPolicy] = None,
        prompt_loader: Optional[PromptLoader] = None,
        request_timeout: Optional[float] = None,
    ):
        self.generator = generator
        self.request_timeout = request_timeout
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=3,
            backoff_base=2.0,
            retryable=is_retryable_generation_error,
            name="classifier",
        )
        self.prompt_loader = prompt_loader or get_prompt_loader()
        logger.info("Classifier gateway initialized", provider=generator.provider)

    @property
    def worst_case_seconds(self) -> Optional[float]:
        if self.request_timeout is None:
            return None
        return self.retry_policy.worst_case_seconds(self.request_timeout)

    async def _generate(self, prompt: str, system_prompt: str) -> str:
        if self.request_timeout is None:
            return await self.generator.generate(prompt, system_prompt)
        try:
            return await asyncio.wait_for(self.generator.generate(prompt, system_prompt), timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise TextGenerationError(
                f"request timed out after {self.request_timeout:g} seconds", timed_out=True
            ) from e

    def build_prompt(self, facts: Mapping[str, Any]) -> str:
        return self.prompt_loader.load(ELIGIBILITY_PROMPT, {"patient_facts": format_patient_facts(facts)})

    async def classify(self, facts: Mapping[str, Any]) -> ClassifierJudgement:
        prompt = self.build_prompt(facts)
        system_prompt = self.prompt_loader.load(SYSTEM_PROMPT)

        logger.info("Requesting eligibility judgement", provider=self.generator.provider)
        try:
            text = await self.retry_policy.run(self._generate, prompt, system_prompt)
        except TextGenerationError as e:
            if e.is_rate_limited:
                raise RateLimitExceeded(
                    f"AI service rate limit exceeded after {self.retry_policy.max_attempts} attempts"
                ) from e
            reason = "timed out" if e.timed_out else f"failed ({e.status_code or 'network error'})"
            raise ServiceUnavailable(f"AI service {reason}: {e}") from e
        except ClassifierError:
            raise
        except Exception as e:
            logger.error("Unexpected classifier transport error", error=str(e), exc_info=True)
            raise ServiceUnavailable(f"AI service call failed: {e}") from e

        judgement = parse_judgement(text)
        logger.info(
            "Eligibility judgement received",
            provider=self.generator.provider,
            status=judgement.status.value,
            prior_auth_required=judgement.coverage.prior_auth_required,
        )
        return judgement

    async def close(self) -> None:
        await self.generator.close()
