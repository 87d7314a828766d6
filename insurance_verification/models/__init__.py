"""Data models for the insurance verification platform."""
from .enums import (
    VerificationStatus,
    PriorAuthStatus,
    Urgency,
    AuditAction,
    ResourceType,
    UserRole,
    NotificationType,
    NotificationUrgency,
    NotificationChannelType,
    MaskKind,
    ClassifierProvider,
)
from .verification import PatientRecord, Coverage, AIInsights, Verification, validate_patient_record
from .prior_auth import PriorAuthRequest
from .audit import AuditEntry, AuditFilters, ClientMetadata, ComplianceReport
from .notification import Notification, ChannelDelivery

__all__ = [
    # Enums
    "VerificationStatus",
    "PriorAuthStatus",
    "Urgency",
    "AuditAction",
    "ResourceType",
    "UserRole",
    "NotificationType",
    "NotificationUrgency",
    "NotificationChannelType",
    "MaskKind",
    "ClassifierProvider",
    # Verification
    "PatientRecord",
    "Coverage",
    "AIInsights",
    "Verification",
    "validate_patient_record",
    # Prior auth
    "PriorAuthRequest",
    # Audit
    "AuditEntry",
    "AuditFilters",
    "ClientMetadata",
    "ComplianceReport",
    # Notifications
    "Notification",
    "ChannelDelivery",
]
