"""Prior authorization workflow for verifications that require payer approval."""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

from insurance_verification.exceptions import (
    ConcurrentUpdateError,
    InvalidTransition,
    RecordNotFound,
    SubmissionFailed,
    ValidationError,
)
from insurance_verification.models.audit import AuditEntry
from insurance_verification.models.enums import (
    AuditAction,
    PriorAuthStatus,
    ResourceType,
    Urgency,
    VerificationStatus,
)
from insurance_verification.models.prior_auth import PriorAuthRequest
from insurance_verification.models.verification import Verification
from insurance_verification.orchestrator.transitions import assert_prior_auth_transition
from insurance_verification.payer.payer_interface import (
    PayerChannel,
    PayerResponse,
    PayerSubmission,
    PayerTransportError,
)
from insurance_verification.retry_policy import NO_RETRY, RetryPolicy
from insurance_verification.security.access_control import SYSTEM_ACTOR, AccessController, Actor
from insurance_verification.services.verification_service import VerificationLifecycle
from insurance_verification.storage.audit_logger import AuditLogger
from insurance_verification.storage.prior_auth_repository import PriorAuthRepository
from insurance_verification.storage.verification_repository import VerificationRepository
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SERVICE = "Medical Consultation"


@dataclass
class SubmissionOutcome:
    """Result of one payer submission."""
    request: PriorAuthRequest
    verification: Verification
    response: PayerResponse


class PriorAuthWorkflow:
    """
    Prior authorization requests raised against requires_auth verifications.

    Each submission writes exactly one audit entry describing whether the
    payer call itself succeeded; a payer asking for more information is a
    successful call. Transport failures raise SubmissionFailed and leave
    the request where it was.
    """

    def __init__(
        self,
        repository: PriorAuthRepository,
        verifications: VerificationRepository,
        lifecycle: VerificationLifecycle,
        payer: PayerChannel,
        audit_logger: AuditLogger,
        access_controller: AccessController,
        retry_policy: RetryPolicy = NO_RETRY,
        submit_timeout: float = 30.0,
    ):
        """
        Initialize the workflow.

        Args:
            repository: Prior auth persistence
            verifications: Verification persistence (lookups)
            lifecycle: Applies payer outcomes to verifications
            payer: Payer submission channel
            audit_logger: Audit log
            access_controller: Role checks
            retry_policy: Payer call policy; single attempt unless the caller opts in
            submit_timeout: Budget for one submission in seconds
        """
        self.repository = repository
        self.verifications = verifications
        self.lifecycle = lifecycle
        self.payer = payer
        self.audit_logger = audit_logger
        self.access = access_controller
        self.retry_policy = retry_policy
        self.submit_timeout = submit_timeout

    async def initiate(
        self,
        actor: Actor,
        verification_id: str,
        clinical_justification: str,
        service_requested: Optional[str] = None,
        urgency: Optional[Union[Urgency, str]] = None,
        requested_by: Optional[str] = None,
    ) -> PriorAuthRequest:
        """
        Create a pending request for a requires_auth verification.

        Raises:
            AccessDenied: If the caller may not create requests
            RecordNotFound: If the verification does not exist
            InvalidTransition: If the verification is not requires_auth
            ValidationError: If the justification is empty or urgency is unknown
        """
        await self.access.require(actor, AuditAction.CREATE, ResourceType.PRIOR_AUTH)

        verification = await self.verifications.get(verification_id)
        if verification is None:
            raise RecordNotFound("verification", verification_id)
        if verification.status != VerificationStatus.REQUIRES_AUTH:
            raise InvalidTransition(
                verification.status.value,
                "prior_auth",
                f"Prior authorization can only be initiated for requires_auth verifications "
                f"(current status: {verification.status.value})",
            )

        errors = {}
        justification = (clinical_justification or "").strip()
        if not justification:
            errors["clinical_justification"] = "Clinical justification is required"
        try:
            urgency_value = Urgency(urgency) if urgency else Urgency.ROUTINE
        except ValueError:
            errors["urgency"] = "Urgency must be one of routine, urgent, stat"
        if errors:
            raise ValidationError(errors)

        request = PriorAuthRequest(
            verification_id=verification.id,
            patient_name=verification.patient.full_name,
            insurance_company=verification.patient.insurance_company,
            policy_number=verification.patient.policy_number,
            service_requested=(service_requested or "").strip() or DEFAULT_SERVICE,
            urgency=urgency_value,
            clinical_justification=justification,
            requested_by=(requested_by or "").strip() or actor.user_id,
        )
        await self.repository.create(request)
        await self.verifications.link_prior_auth(verification.id, request.id)
        await self._audit(actor, AuditAction.CREATE, request.id, success=True)

        logger.info(
            "Prior authorization initiated",
            prior_auth_id=request.id,
            verification_id=verification.id,
            urgency=request.urgency.value,
        )
        return request

    async def submit(self, actor: Actor, request_id: str) -> SubmissionOutcome:
        """
        Submit a request to the payer and apply the response.

        Approval marks the request approved with an auth number and moves the
        verification to eligible. Non-approval marks it more_info_needed and
        leaves the verification at requires_auth.

        Raises:
            AccessDenied: If the caller may not update requests
            RecordNotFound: If the request does not exist
            InvalidTransition: If the request is closed or its verification
                no longer awaits authorization
            SubmissionFailed: If the payer could not be reached
        """
        await self.access.require(actor, AuditAction.UPDATE, ResourceType.PRIOR_AUTH, request_id)

        request = await self.repository.get(request_id)
        if request is None:
            await self._audit(actor, AuditAction.UPDATE, request_id, success=False, error="not found")
            raise RecordNotFound("prior_auth", request_id)
        if request.status not in (PriorAuthStatus.PENDING, PriorAuthStatus.MORE_INFO_NEEDED):
            error = InvalidTransition(
                request.status.value,
                PriorAuthStatus.SUBMITTED.value,
                f"Prior authorization {request_id} is {request.status.value} and cannot be submitted",
            )
            await self._audit(actor, AuditAction.UPDATE, request_id, success=False, error=str(error))
            raise error

        verification = await self.verifications.get(request.verification_id)
        if verification is None or verification.status != VerificationStatus.REQUIRES_AUTH:
            current = verification.status.value if verification else "missing"
            error = InvalidTransition(
                current,
                VerificationStatus.ELIGIBLE.value,
                f"Verification {request.verification_id} is {current}; "
                f"prior authorization {request_id} can no longer be submitted",
            )
            await self._audit(actor, AuditAction.UPDATE, request_id, success=False, error=str(error))
            raise error

        submitted_at = datetime.now(timezone.utc)
        logger.info("Submitting prior authorization", prior_auth_id=request_id, channel=self.payer.channel_name)
        try:
            response = await asyncio.wait_for(
                self.retry_policy.run(self.payer.submit, PayerSubmission.from_request(request)),
                timeout=self.submit_timeout,
            )
        except asyncio.TimeoutError as e:
            message = f"Payer submission timed out after {self.submit_timeout:g} seconds"
            await self._audit(actor, AuditAction.UPDATE, request_id, success=False, error=message)
            raise SubmissionFailed(message) from e
        except PayerTransportError as e:
            message = f"Payer submission failed: {e}"
            await self._audit(actor, AuditAction.UPDATE, request_id, success=False, error=message)
            raise SubmissionFailed(message) from e

        target = PriorAuthStatus.APPROVED if response.approved else PriorAuthStatus.MORE_INFO_NEEDED
        try:
            assert_prior_auth_transition(request.status, target)
            updated = await self.repository.update(
                request_id,
                {
                    "status": target,
                    "submitted_at": submitted_at,
                    "response_received_at": response.received_at,
                    "auth_number": response.auth_number if response.approved else None,
                    "notes": response.message,
                },
                expected_version=request.version,
            )
            verification = await self.lifecycle.apply_prior_auth_outcome(
                request.verification_id,
                prior_auth_request_id=request_id,
                approved=response.approved,
                message=response.message,
                auth_number=response.auth_number,
            )
        except Exception as e:
            logger.error("Failed to apply payer response", prior_auth_id=request_id, error=str(e))
            await self._audit(actor, AuditAction.UPDATE, request_id, success=False, error=str(e))
            raise
        await self._audit(actor, AuditAction.UPDATE, request_id, success=True)

        if response.approved:
            await self._close_superseded(request.verification_id, request_id)

        logger.info(
            "Prior authorization response applied",
            prior_auth_id=request_id,
            status=updated.status.value,
            verification_status=verification.status.value,
        )
        return SubmissionOutcome(request=updated, verification=verification, response=response)

    async def _close_superseded(self, verification_id: str, approved_id: str) -> None:
        # Other open requests for an approved verification can never be submitted
        for sibling in await self.repository.list_for_verification(verification_id):
            if sibling.id == approved_id or not sibling.is_open:
                continue
            try:
                await self.repository.update(
                    sibling.id,
                    {"status": PriorAuthStatus.DENIED, "notes": f"Superseded by approved request {approved_id}"},
                    expected_version=sibling.version,
                )
            except ConcurrentUpdateError:
                logger.warning("Superseded request changed concurrently", prior_auth_id=sibling.id)
                continue
            await self._audit(SYSTEM_ACTOR, AuditAction.UPDATE, sibling.id, success=True)
            logger.info("Closed superseded prior authorization", prior_auth_id=sibling.id, approved_id=approved_id)

    async def abandon(self, actor: Actor, request_id: str) -> PriorAuthRequest:
        """
        Close an open request without a payer decision.

        Raises:
            AccessDenied, RecordNotFound, InvalidTransition
        """
        await self.access.require(actor, AuditAction.UPDATE, ResourceType.PRIOR_AUTH, request_id)
        request = await self.repository.get(request_id)
        if request is None:
            raise RecordNotFound("prior_auth", request_id)
        if not request.is_open:
            raise InvalidTransition(
                request.status.value,
                PriorAuthStatus.DENIED.value,
                f"Prior authorization {request_id} is already {request.status.value}",
            )

        updated = await self.repository.update(
            request_id,
            {"status": PriorAuthStatus.DENIED, "notes": f"Abandoned by {actor.user_id}"},
            expected_version=request.version,
        )
        await self._audit(actor, AuditAction.UPDATE, request_id, success=True)
        logger.info("Prior authorization abandoned", prior_auth_id=request_id)
        return updated

    async def track_status(self, actor: Actor, request_id: str) -> PriorAuthRequest:
        """Return the current state of a request."""
        await self.access.require(actor, AuditAction.VIEW, ResourceType.PRIOR_AUTH, request_id)
        request = await self.repository.get(request_id)
        if request is None:
            raise RecordNotFound("prior_auth", request_id)
        await self._audit(actor, AuditAction.VIEW, request_id, success=True)
        return request

    async def list_for_verification(self, actor: Actor, verification_id: str) -> List[PriorAuthRequest]:
        await self.access.require(actor, AuditAction.VIEW, ResourceType.PRIOR_AUTH)
        requests = await self.repository.list_for_verification(verification_id)
        await self._audit(actor, AuditAction.VIEW, verification_id, success=True)
        return requests

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
            resource_type=ResourceType.PRIOR_AUTH,
            resource_id=resource_id,
            success=success,
            error_message=error,
            client=actor.client_metadata(),
        ))
