"""Service layer for business logic."""
from .verification_service import VerificationLifecycle
from .prior_auth_service import PriorAuthWorkflow, SubmissionOutcome
from .notification_service import NotificationDispatcher
from .notification_channels import EmailChannel, NotificationChannel, SlackWebhookChannel
from .compliance_service import ComplianceService, RetentionPolicy, default_retention_policies

__all__ = [
    "VerificationLifecycle",
    "PriorAuthWorkflow",
    "SubmissionOutcome",
    "NotificationDispatcher",
    "EmailChannel",
    "NotificationChannel",
    "SlackWebhookChannel",
    "ComplianceService",
    "RetentionPolicy",
    "default_retention_policies",
]
