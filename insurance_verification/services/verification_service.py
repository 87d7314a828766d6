"""Verification lifecycle: submission, classification, persistence and status."""
import asyncio
from typing import Any, Dict, List, Mapping, Optional, Tuple

from insurance_verification.exceptions import ClassifierError, RecordNotFound
from insurance_verification.models.audit import AuditEntry
from insurance_verification.models.enums import AuditAction, ResourceType, VerificationStatus
from insurance_verification.models.verification import (
    AIInsights,
    Coverage,
    Verification,
    validate_patient_record,
)
from insurance_verification.orchestrator.transitions import assert_transition
from insurance_verification.reasoning.classifier_gateway import Classifier, ClassifierJudgement
from insurance_verification.security.access_control import AccessController, Actor
from insurance_verification.services.notification_service import NotificationDispatcher
from insurance_verification.storage.audit_logger import AuditLogger
from insurance_verification.storage.verification_repository import VerificationRepository
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_NEXT_STEPS: Dict[VerificationStatus, List[str]] = {
    VerificationStatus.ELIGIBLE: [
        "Auto-confirm appointment",
        "Send confirmation to patient",
        "Update EHR record",
    ],
    VerificationStatus.INELIGIBLE: [
        "Contact patient about coverage",
        "Discuss payment options",
        "Reschedule if needed",
    ],
    VerificationStatus.REQUIRES_AUTH: [
        "Initiate prior authorization",
        "Contact insurance provider",
        "Hold appointment pending approval",
    ],
    VerificationStatus.ERROR: [
        "Manual verification required",
        "Contact clearinghouse support",
        "Retry verification",
    ],
}

MANUAL_REVIEW_STEPS = [
    "Contact insurance provider directly",
    "Verify patient information manually",
    "Retry verification later",
]
FALLBACK_QUESTION = "Please confirm all insurance details are correct"


def fallback_outcome(cause: str) -> Tuple[VerificationStatus, Coverage, List[str], AIInsights]:
    """Outcome recorded when no usable judgement could be obtained."""
    cause = cause.strip().rstrip(".") or "unknown error"
    insights = AIInsights(
        reasoning=f"AI verification temporarily unavailable: {cause}. Manual verification recommended.",
        recommendations=list(MANUAL_REVIEW_STEPS),
        clarifying_questions=[FALLBACK_QUESTION],
    )
    return VerificationStatus.ERROR, Coverage.unavailable(), list(MANUAL_REVIEW_STEPS), insights


def judgement_outcome(judgement: ClassifierJudgement) -> Tuple[VerificationStatus, Coverage, List[str], AIInsights]:
    """Map a classifier judgement onto status, coverage, next steps and insights."""
    status = judgement.status
    coverage = judgement.coverage
    if status == VerificationStatus.ELIGIBLE and coverage.prior_auth_required:
        # An eligible result only stands once authorization is approved
        logger.info("Eligible judgement requires prior authorization; holding for auth")
        status = VerificationStatus.REQUIRES_AUTH
    elif status in (VerificationStatus.INELIGIBLE, VerificationStatus.ERROR) and coverage.prior_auth_required:
        # No authorization can be pursued for a non-covered result
        logger.info("Clearing prior authorization flag on non-covered judgement", status=status.value)
        coverage = coverage.model_copy(update={"prior_auth_required": False})

    next_steps = list(judgement.recommendations) or list(DEFAULT_NEXT_STEPS[status])
    insights = AIInsights(
        reasoning=judgement.reasoning,
        recommendations=list(judgement.recommendations),
        clarifying_questions=list(judgement.clarifying_questions),
    )
    return status, coverage, next_steps, insights


class VerificationLifecycle:
    """
    Orchestrates submission -> classification -> persistence -> status.

    Classifier failures of any kind (timeout, rate limit, outage, malformed
    output) end in an ``error`` verification rather than an exception.
    Only validation and access-control failures reach the caller.
    """

    def __init__(
        self,
        repository: VerificationRepository,
        classifier: Classifier,
        audit_logger: AuditLogger,
        access_controller: AccessController,
        dispatcher: Optional[NotificationDispatcher] = None,
        classifier_timeout: float = 96.0,
    ):
        """
        Initialize the lifecycle.

        Args:
            repository: Verification persistence
            classifier: Eligibility classifier
            audit_logger: Audit log for PHI access
            access_controller: Role checks
            dispatcher: Receives resolved verifications (optional)
            classifier_timeout: Overall budget for one classification, retries included
        """
        self.repository = repository
        self.classifier = classifier
        self.audit_logger = audit_logger
        self.access = access_controller
        self.dispatcher = dispatcher
        self.classifier_timeout = classifier_timeout

    async def submit(self, actor: Actor, data: Mapping[str, Any]) -> Verification:
        """
        Submit patient data for eligibility verification.

        Args:
            actor: Caller (needs create permission)
            data: Raw patient/insurance fields, snake_case keys

        Returns:
            The resolved verification; never pending

        Raises:
            AccessDenied: If the caller may not create verifications
            ValidationError: With every violated field; nothing is stored or audited
        """
        await self.access.require(actor, AuditAction.CREATE, ResourceType.VERIFICATION)
        patient = validate_patient_record(data)

        verification = Verification(patient=patient)
        try:
            await self.repository.create(verification)
        except Exception as e:
            await self._audit(actor, AuditAction.CREATE, verification.id, success=False, error=str(e))
            raise

        logger.info("Verification submitted", verification_id=verification.id)
        status, coverage, next_steps, insights = await self._classify(verification)
        assert_transition(VerificationStatus.PENDING, status)

        try:
            resolved = await self.repository.resolve(
                verification.id,
                status=status,
                coverage=coverage,
                next_steps=next_steps,
                ai_insights=insights,
            )
        except Exception as e:
            await self._audit(actor, AuditAction.CREATE, verification.id, success=False, error=str(e))
            raise

        await self._audit(actor, AuditAction.CREATE, resolved.id, success=True)
        self._publish(resolved)
        return resolved

    async def _classify(self, verification: Verification) -> Tuple[VerificationStatus, Coverage, List[str], AIInsights]:
        try:
            judgement = await asyncio.wait_for(
                self.classifier.classify(verification.patient.to_facts()),
                timeout=self.classifier_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Classifier timed out", verification_id=verification.id, timeout=self.classifier_timeout)
            return fallback_outcome(f"AI service timed out after {self.classifier_timeout:g} seconds")
        except ClassifierError as e:
            logger.warning(
                "Classifier failed; recording error status",
                verification_id=verification.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return fallback_outcome(str(e))
        except Exception as e:
            logger.error("Unexpected classifier failure", verification_id=verification.id, error=str(e), exc_info=True)
            return fallback_outcome(f"unexpected error ({type(e).__name__})")

        return judgement_outcome(judgement)

    async def get(self, actor: Actor, verification_id: str) -> Verification:
        """
        Fetch one verification with full (unmasked) patient data.

        Raises:
            AccessDenied, RecordNotFound
        """
        await self.access.require(actor, AuditAction.VIEW, ResourceType.VERIFICATION, verification_id)
        verification = await self.repository.get(verification_id)
        if verification is None:
            await self._audit(actor, AuditAction.VIEW, verification_id, success=False, error="not found")
            raise RecordNotFound("verification", verification_id)
        await self._audit(actor, AuditAction.VIEW, verification_id, success=True)
        return verification

    async def list(
        self,
        actor: Actor,
        status: Optional[VerificationStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Verification]:
        """List verifications newest first."""
        await self.access.require(actor, AuditAction.VIEW, ResourceType.VERIFICATION)
        verifications = await self.repository.list(status=status, limit=limit, offset=offset)
        await self._audit(actor, AuditAction.VIEW, "list", success=True)
        return verifications

    async def export(
        self,
        actor: Actor,
        status: Optional[VerificationStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Export verification summaries (identifiers masked).

        Raises:
            AccessDenied: If the caller may not export
        """
        await self.access.require(actor, AuditAction.EXPORT, ResourceType.VERIFICATION, "bulk_export")
        verifications = await self.repository.list(status=status, limit=limit)
        rows = []
        for verification in verifications:
            row = verification.summary()
            row["next_steps"] = list(verification.next_steps)
            row["auth_number"] = verification.auth_number
            rows.append(row)
        await self._audit(actor, AuditAction.EXPORT, "bulk_export", success=True)
        logger.info("Verifications exported", count=len(rows))
        return rows

    async def apply_prior_auth_outcome(
        self,
        verification_id: str,
        prior_auth_request_id: str,
        approved: bool,
        message: str,
        auth_number: Optional[str] = None,
    ) -> Verification:
        """
        Revise a requires_auth verification after a payer response.

        Approval moves it to eligible with the authorization number leading
        the next steps and re-publishes it; anything else keeps it at
        requires_auth with the payer's message appended to the next steps.
        """
        current = await self.repository.get(verification_id)
        if current is None:
            raise RecordNotFound("verification", verification_id)

        if approved:
            target = VerificationStatus.ELIGIBLE
            next_steps = [f"Prior authorization approved: {auth_number}"] + DEFAULT_NEXT_STEPS[target]
        else:
            target = VerificationStatus.REQUIRES_AUTH
            next_steps = list(current.next_steps)
            if message and message not in next_steps:
                next_steps.append(message)
        assert_transition(current.status, target)

        updated = await self.repository.update_prior_auth(
            verification_id,
            status=target,
            next_steps=next_steps,
            prior_auth_request_id=prior_auth_request_id,
            auth_number=auth_number if approved else None,
        )
        logger.info(
            "Verification revised after payer response",
            verification_id=verification_id,
            status=updated.status.value,
        )
        if approved:
            self._publish(updated)
        return updated

    def _publish(self, verification: Verification) -> None:
        if self.dispatcher is None:
            return
        try:
            self.dispatcher.publish(verification)
        except Exception as e:
            logger.error("Failed to queue notification", verification_id=verification.id, error=str(e))

    async def _audit(
        self,
        actor: Actor,
        action: AuditAction,
        resource_id: str,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        await self.audit_logger.record(AuditEntry(
            actor_id=actor.user_id,
            action=action,
            resource_type=ResourceType.VERIFICATION,
            resource_id=resource_id,
            success=success,
            error_message=error,
            client=actor.client_metadata(),
        ))
