"""Request models for API endpoints."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubmitVerificationRequest(BaseModel):
    """
    Patient and insurance data for a new verification.

    Fields are optional here so the domain validator can report every
    missing or invalid field in one response.
    """
    model_config = ConfigDict(populate_by_name=True)

    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    date_of_birth: Optional[str] = Field(default=None, alias="dateOfBirth", description="YYYY-MM-DD")
    insurance_company: Optional[str] = Field(default=None, alias="insuranceCompany")
    policy_number: Optional[str] = Field(default=None, alias="policyNumber")
    member_id: Optional[str] = Field(default=None, alias="memberID")
    group_number: Optional[str] = Field(default=None, alias="groupNumber")
    subscriber_name: Optional[str] = Field(default=None, alias="subscriberName")

    def to_patient_data(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=False)


class InitiatePriorAuthRequest(BaseModel):
    """Request to start prior authorization for a requires_auth verification."""
    model_config = ConfigDict(populate_by_name=True)

    clinical_justification: Optional[str] = Field(default=None, alias="clinicalJustification")
    service_requested: Optional[str] = Field(default=None, alias="serviceRequested")
    urgency: Optional[str] = Field(default=None, description="routine | urgent | stat")
    requested_by: Optional[str] = Field(default=None, alias="requestedBy")
