"""Verification domain models: patient record, coverage, AI insights."""
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from insurance_verification.exceptions import ValidationError
from .enums import VerificationStatus

POLICY_NUMBER_PATTERN = re.compile(r"^[A-Za-z0-9]{3,20}$")
MAX_PATIENT_AGE_YEARS = 120

REQUIRED_PATIENT_FIELDS = {
    "first_name": "First name is required",
    "last_name": "Last name is required",
    "date_of_birth": "Date of birth is required",
    "insurance_company": "Insurance company is required",
    "policy_number": "Policy number is required",
    "member_id": "Member ID is required",
}


class PatientRecord(BaseModel):
    """Patient and insurance facts. Immutable once attached to a verification."""
    model_config = ConfigDict(frozen=True)

    first_name: str
    last_name: str
    date_of_birth: date
    insurance_company: str
    policy_number: str
    member_id: str
    group_number: Optional[str] = None
    subscriber_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_facts(self) -> Dict[str, Any]:
        """Facts handed to the classifier; every provided field is included."""
        facts = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "date_of_birth": self.date_of_birth.isoformat(),
            "insurance_company": self.insurance_company,
            "policy_number": self.policy_number,
            "member_id": self.member_id,
        }
        if self.group_number:
            facts["group_number"] = self.group_number
        if self.subscriber_name:
            facts["subscriber_name"] = self.subscriber_name
        return facts


def _min_birth_date(today: date) -> date:
    try:
        return today.replace(year=today.year - MAX_PATIENT_AGE_YEARS)
    except ValueError:
        # Feb 29 on a non-leap target year
        return today.replace(year=today.year - MAX_PATIENT_AGE_YEARS, day=28)


def validate_patient_record(data: Mapping[str, Any], today: Optional[date] = None) -> PatientRecord:
    """
    Validate raw patient input and build a PatientRecord.

    Every violated field is collected before raising, so callers can show
    all problems at once.

    Args:
        data: Raw field values keyed by snake_case field name
        today: Reference date for date-of-birth checks (defaults to today, UTC)

    Returns:
        Validated, immutable PatientRecord

    Raises:
        ValidationError: With a message for every violated field
    """
    today = today or datetime.now(timezone.utc).date()
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    for field_name in (
        "first_name", "last_name", "insurance_company", "policy_number",
        "member_id", "group_number", "subscriber_name",
    ):
        value = data.get(field_name)
        if value is None:
            cleaned[field_name] = None
            continue
        if not isinstance(value, str):
            value = str(value)
        cleaned[field_name] = value.strip() or None

    raw_dob = data.get("date_of_birth")
    dob: Optional[date] = None
    if isinstance(raw_dob, datetime):
        dob = raw_dob.date()
    elif isinstance(raw_dob, date):
        dob = raw_dob
    elif isinstance(raw_dob, str) and raw_dob.strip():
        try:
            dob = date.fromisoformat(raw_dob.strip())
        except ValueError:
            errors["date_of_birth"] = "Date of birth must be a valid date (YYYY-MM-DD)"
    cleaned["date_of_birth"] = dob

    for field_name, message in REQUIRED_PATIENT_FIELDS.items():
        if cleaned.get(field_name) is None and field_name not in errors:
            errors[field_name] = message

    if dob is not None:
        if dob > today:
            errors["date_of_birth"] = "Date of birth cannot be in the future"
        elif dob < _min_birth_date(today):
            errors["date_of_birth"] = "Please enter a valid date of birth"

    policy_number = cleaned.get("policy_number")
    if policy_number and not POLICY_NUMBER_PATTERN.match(policy_number):
        errors["policy_number"] = "Policy number should be 3-20 alphanumeric characters"

    if errors:
        raise ValidationError(errors)

    return PatientRecord(**cleaned)


class Coverage(BaseModel):
    """Coverage snapshot returned by the classifier."""
    active: bool = False
    in_network: bool = False
    effective_date: Optional[date] = None
    termination_date: Optional[date] = None
    copay: Optional[float] = Field(default=None, ge=0)
    deductible: Optional[float] = Field(default=None, ge=0)
    prior_auth_required: bool = False

    @classmethod
    def unavailable(cls) -> "Coverage":
        """All-false/zero coverage used when no judgement could be obtained."""
        return cls(
            active=False,
            in_network=False,
            copay=0.0,
            deductible=0.0,
            prior_auth_required=False,
        )


class AIInsights(BaseModel):
    """Reasoning and suggestions produced alongside a judgement."""
    reasoning: str = ""
    recommendations: List[str] = Field(default_factory=list)
    clarifying_questions: List[str] = Field(default_factory=list)


class Verification(BaseModel):
    """An eligibility verification and its outcome."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    patient: PatientRecord
    status: VerificationStatus = VerificationStatus.PENDING
    coverage: Coverage = Field(default_factory=Coverage)
    next_steps: List[str] = Field(default_factory=list)
    ai_insights: Optional[AIInsights] = None

    # Weak link to the most recent prior authorization request
    prior_auth_request_id: Optional[str] = None
    auth_number: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        """Structured summary used in notifications and list views."""
        from insurance_verification.security.masking import mask_for_display
        from .enums import MaskKind

        return {
            "verification_id": self.id,
            "patient_name": self.patient.full_name,
            "insurance_company": self.patient.insurance_company,
            "policy_number": mask_for_display(self.patient.policy_number, MaskKind.POLICY),
            "member_id": mask_for_display(self.patient.member_id, MaskKind.MEMBER_ID),
            "status": self.status.value,
            "active": self.coverage.active,
            "in_network": self.coverage.in_network,
            "prior_auth_required": self.coverage.prior_auth_required,
            "created_at": self.created_at.isoformat(),
        }
