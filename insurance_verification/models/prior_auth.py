"""Prior authorization request model."""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .enums import PriorAuthStatus, Urgency

OPEN_PRIOR_AUTH_STATUSES = frozenset({
    PriorAuthStatus.PENDING,
    PriorAuthStatus.SUBMITTED,
    PriorAuthStatus.MORE_INFO_NEEDED,
})


class PriorAuthRequest(BaseModel):
    """A prior authorization request raised against a requires_auth verification."""
    id: str = Field(default_factory=lambda: f"PA-{uuid4().hex[:12].upper()}")
    verification_id: str = Field(..., description="Verification this request was raised for (lookup only)")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    # Denormalized from the verification at creation time
    patient_name: str
    insurance_company: str
    policy_number: str

    service_requested: str = Field(default="Medical Consultation")
    urgency: Urgency = Field(default=Urgency.ROUTINE)
    clinical_justification: str
    requested_by: str

    status: PriorAuthStatus = Field(default=PriorAuthStatus.PENDING)
    submitted_at: Optional[datetime] = None
    response_received_at: Optional[datetime] = None
    auth_number: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_PRIOR_AUTH_STATUSES
