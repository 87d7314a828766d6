"""Deterministic classifier and text generator for local runs and tests."""
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from insurance_verification.models.enums import VerificationStatus
from insurance_verification.models.verification import Coverage
from insurance_verification.reasoning.classifier_gateway import (
    Classifier,
    ClassifierJudgement,
    TextGenerator,
)
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

JudgementFactory = Callable[[Mapping[str, Any]], ClassifierJudgement]
Scripted = Union[str, BaseException]


def default_judgement(facts: Mapping[str, Any]) -> ClassifierJudgement:
    """
    Rule-of-thumb judgement keyed on the policy number.

    Policies starting with ``PA`` need prior authorization, ``XX`` are
    inactive; everything else is eligible in network.
    """
    policy = str(facts.get("policy_number", "")).upper()
    if policy.startswith("XX"):
        return ClassifierJudgement(
            status=VerificationStatus.INELIGIBLE,
            coverage=Coverage(active=False, in_network=False, prior_auth_required=False),
            reasoning="Policy is not active on the requested date of service.",
            recommendations=["Confirm the patient's current insurance"],
        )
    if policy.startswith("PA"):
        return ClassifierJudgement(
            status=VerificationStatus.REQUIRES_AUTH,
            coverage=Coverage(active=True, in_network=True, copay=40.0, deductible=1500.0, prior_auth_required=True),
            reasoning="Coverage is active but the plan requires prior authorization for this service.",
            recommendations=["Submit prior authorization before scheduling"],
        )
    return ClassifierJudgement(
        status=VerificationStatus.ELIGIBLE,
        coverage=Coverage(active=True, in_network=True, copay=25.0, deductible=500.0, prior_auth_required=False),
        reasoning="Coverage is active and the provider is in network.",
    )


class FakeClassifier(Classifier):
    """
    Classifier returning canned judgements.

    ``outcomes`` is consumed in order (a judgement is returned, an exception
    is raised); once exhausted, ``factory`` decides.
    """

    def __init__(
        self,
        outcomes: Optional[Sequence[Union[ClassifierJudgement, BaseException]]] = None,
        factory: JudgementFactory = default_judgement,
    ):
        self.outcomes = list(outcomes or [])
        self.factory = factory
        self.calls: List[Dict[str, Any]] = []

    async def classify(self, facts: Mapping[str, Any]) -> ClassifierJudgement:
        self.calls.append(dict(facts))
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        judgement = self.factory(facts)
        logger.debug("Fake classifier judgement", status=judgement.status.value)
        return judgement


class ScriptedTextGenerator(TextGenerator):
    """Text generator replaying scripted responses or errors, one per call."""

    def __init__(self, script: Sequence[Scripted]):
        self.script = list(script)
        self.prompts: List[str] = []

    @property
    def provider(self) -> str:
        return "scripted"

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        if not self.script:
            raise AssertionError("ScriptedTextGenerator ran out of responses")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item
