"""Response models for API endpoints."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from insurance_verification.models.audit import AuditEntry
from insurance_verification.models.enums import MaskKind
from insurance_verification.models.prior_auth import PriorAuthRequest
from insurance_verification.models.verification import Verification
from insurance_verification.security.masking import mask_for_display


class VerificationResponse(BaseModel):
    """Response containing verification data."""
    id: str
    status: str
    created_at: str
    updated_at: str
    patient: Dict[str, Any]
    coverage: Dict[str, Any]
    next_steps: List[str] = Field(default_factory=list)
    ai_insights: Optional[Dict[str, Any]] = None
    prior_auth_request_id: Optional[str] = None
    auth_number: Optional[str] = None

    @classmethod
    def from_verification(cls, verification: Verification, masked: bool = False) -> "VerificationResponse":
        """
        Build a response; ``masked`` hides identifiers for list views.
        """
        patient = verification.patient.model_dump(mode="json")
        if masked:
            patient["policy_number"] = mask_for_display(patient["policy_number"], MaskKind.POLICY)
            patient["member_id"] = mask_for_display(patient["member_id"], MaskKind.MEMBER_ID)
        return cls(
            id=verification.id,
            status=verification.status.value,
            created_at=verification.created_at.isoformat(),
            updated_at=verification.updated_at.isoformat(),
            patient=patient,
            coverage=verification.coverage.model_dump(mode="json"),
            next_steps=list(verification.next_steps),
            ai_insights=verification.ai_insights.model_dump(mode="json") if verification.ai_insights else None,
            prior_auth_request_id=verification.prior_auth_request_id,
            auth_number=verification.auth_number,
        )


class VerificationListResponse(BaseModel):
    """Response containing a page of verifications."""
    verifications: List[VerificationResponse]
    limit: int
    offset: int


class ExportResponse(BaseModel):
    """Exported verification summaries."""
    rows: List[Dict[str, Any]]
    count: int


class PriorAuthResponse(BaseModel):
    """Response containing a prior authorization request."""
    id: str
    verification_id: str
    status: str
    service_requested: str
    urgency: str
    clinical_justification: str
    requested_by: str
    patient_name: str
    insurance_company: str
    policy_number: str
    created_at: str
    submitted_at: Optional[str] = None
    response_received_at: Optional[str] = None
    auth_number: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_request(cls, request: PriorAuthRequest) -> "PriorAuthResponse":
        return cls(
            id=request.id,
            verification_id=request.verification_id,
            status=request.status.value,
            service_requested=request.service_requested,
            urgency=request.urgency.value,
            clinical_justification=request.clinical_justification,
            requested_by=request.requested_by,
            patient_name=request.patient_name,
            insurance_company=request.insurance_company,
            policy_number=mask_for_display(request.policy_number, MaskKind.POLICY),
            created_at=request.created_at.isoformat(),
            submitted_at=request.submitted_at.isoformat() if request.submitted_at else None,
            response_received_at=request.response_received_at.isoformat() if request.response_received_at else None,
            auth_number=request.auth_number,
            notes=request.notes,
        )


class SubmissionResponse(BaseModel):
    """Outcome of a payer submission."""
    request: PriorAuthResponse
    verification: VerificationResponse
    approved: bool
    message: str


class AuditEntryResponse(BaseModel):
    """A single audit log entry."""
    id: str
    actor_id: str
    action: str
    resource_type: str
    resource_id: str
    success: bool
    error_message: Optional[str] = None
    timestamp: str
    ip_address: str
    user_agent: str
    correlation_id: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryResponse":
        return cls(
            id=entry.id,
            actor_id=entry.actor_id,
            action=entry.action.value,
            resource_type=entry.resource_type.value,
            resource_id=entry.resource_id,
            success=entry.success,
            error_message=entry.error_message,
            timestamp=entry.timestamp.isoformat(),
            ip_address=entry.client.ip_address,
            user_agent=entry.client.user_agent,
            correlation_id=entry.client.correlation_id,
        )


class AuditLogListResponse(BaseModel):
    """Audit entries, newest first."""
    entries: List[AuditEntryResponse]
    total: int


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: Optional[str] = None
    errors: Optional[Dict[str, str]] = None
    error_id: Optional[str] = None
