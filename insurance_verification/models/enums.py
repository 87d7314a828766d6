"""Enumeration types for the insurance verification platform."""
from enum import Enum


class VerificationStatus(str, Enum):
    """Lifecycle status of an eligibility verification."""
    PENDING = "pending"
    ELIGIBLE = "eligible"
    INELIGIBLE = "ineligible"
    REQUIRES_AUTH = "requires_auth"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not VerificationStatus.PENDING


class PriorAuthStatus(str, Enum):
    """Status of a prior authorization request."""
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    DENIED = "denied"
    MORE_INFO_NEEDED = "more_info_needed"


class Urgency(str, Enum):
    """Clinical urgency of a prior authorization request."""
    ROUTINE = "routine"
    URGENT = "urgent"
    STAT = "stat"


class AuditAction(str, Enum):
    """Actions recorded against protected data."""
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"
    PRINT = "print"


class ResourceType(str, Enum):
    """Kinds of protected resources."""
    VERIFICATION = "verification"
    PRIOR_AUTH = "prior_auth"
    PATIENT_DATA = "patient_data"


class UserRole(str, Enum):
    """Front-office roles."""
    ADMIN = "admin"
    STAFF = "staff"
    MANAGER = "manager"
    USER = "user"


class NotificationType(str, Enum):
    """Types of notifications."""
    STAFF_ALERT = "staff_alert"
    PATIENT_CONFIRMATION = "patient_confirmation"


class NotificationUrgency(str, Enum):
    """Urgency attached to a notification."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationChannelType(str, Enum):
    """Delivery channels for notifications."""
    EMAIL = "email"
    CHAT = "chat"


class MaskKind(str, Enum):
    """Kinds of values masked for display."""
    POLICY = "policy"
    MEMBER_ID = "member_id"
    PHONE = "phone"
    EMAIL = "email"
    SSN = "ssn"


class ClassifierProvider(str, Enum):
    """Text-generation vendors the classifier gateway can use."""
    GEMINI = "gemini"
    CLAUDE = "claude"
    AZURE_OPENAI = "azure_openai"
    FAKE = "fake"
