"""Abstract payer submission channel."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from insurance_verification.models.prior_auth import PriorAuthRequest


class PayerTransportError(Exception):
    """The payer channel could not be reached or answered with a transport error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class PayerSubmission:
    """Prior authorization fields sent to a payer."""
    request_id: str
    verification_id: str
    patient_name: str
    insurance_company: str
    policy_number: str
    service_requested: str
    urgency: str
    clinical_justification: str
    requested_by: str

    @classmethod
    def from_request(cls, request: PriorAuthRequest) -> "PayerSubmission":
        return cls(
            request_id=request.id,
            verification_id=request.verification_id,
            patient_name=request.patient_name,
            insurance_company=request.insurance_company,
            policy_number=request.policy_number,
            service_requested=request.service_requested,
            urgency=request.urgency.value,
            clinical_justification=request.clinical_justification,
            requested_by=request.requested_by,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requestId": self.request_id,
            "verificationId": self.verification_id,
            "patientName": self.patient_name,
            "insuranceCompany": self.insurance_company,
            "policyNumber": self.policy_number,
            "serviceRequested": self.service_requested,
            "urgency": self.urgency,
            "clinicalJustification": self.clinical_justification,
            "requestedBy": self.requested_by,
        }


@dataclass
class PayerResponse:
    """Payer answer. ``approved=False`` means more information is needed."""
    approved: bool
    message: str
    auth_number: Optional[str] = None
    received_at: Optional[datetime] = None

    def __post_init__(self):
        if self.received_at is None:
            self.received_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approved": self.approved,
            "message": self.message,
            "auth_number": self.auth_number,
            "received_at": self.received_at.isoformat() if self.received_at else None,
        }


class PayerChannel(ABC):
    """Abstract base class for payer submission channels."""

    @property
    @abstractmethod
    def channel_name(self) -> str:
        pass

    @abstractmethod
    async def submit(self, submission: PayerSubmission) -> PayerResponse:
        """
        Submit a prior authorization request.

        Args:
            submission: Request fields

        Returns:
            Payer decision

        Raises:
            PayerTransportError: If the payer could not be reached
        """
        pass

    async def close(self) -> None:
        return None
