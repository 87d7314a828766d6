"""Exception taxonomy for the verification platform.

Validation and access-control errors propagate to callers. Classifier and
payer transport errors are absorbed by the lifecycle and the prior
authorization workflow and turned into domain states.
"""
from typing import Dict, Optional


class VerificationPlatformError(Exception):
    """Base class for all platform errors."""
    pass


class ValidationError(VerificationPlatformError):
    """Input failed validation. Carries every violated field, not just the first."""

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        if message is None:
            fields = ", ".join(sorted(self.errors))
            message = f"Validation failed for: {fields}"
        super().__init__(message)


class InvalidTransition(ValidationError):
    """A lifecycle precondition was not met for the requested operation."""

    def __init__(self, current: str, target: str, reason: Optional[str] = None):
        self.current = current
        self.target = target
        message = reason or f"Cannot transition from {current} to {target}"
        super().__init__({"status": message}, message)


class ClassifierError(VerificationPlatformError):
    """Base class for classifier gateway failures."""
    pass


class RateLimitExceeded(ClassifierError):
    """The text-generation service kept rate limiting (HTTP 429) through the last attempt."""
    pass


class ServiceUnavailable(ClassifierError):
    """The text-generation service failed for a non-rate-limit reason (5xx, network, timeout)."""
    pass


class MalformedResponse(ClassifierError):
    """The text-generation service returned output that does not match the judgement schema."""
    pass


class SubmissionFailed(VerificationPlatformError):
    """The payer channel could not be reached. The prior auth request stays pending."""
    pass


class AccessDenied(VerificationPlatformError):
    """The caller's role does not allow the requested action."""

    def __init__(self, role: str, action: str, resource_type: str):
        self.role = role
        self.action = action
        self.resource_type = resource_type
        super().__init__(f"Role '{role}' is not permitted to {action} {resource_type}")


class AuditWriteFailed(VerificationPlatformError):
    """An audit entry could not be persisted after its retry."""
    pass


class RecordNotFound(VerificationPlatformError):
    """A requested record does not exist."""

    def __init__(self, resource_type: str, record_id: str):
        self.resource_type = resource_type
        self.record_id = record_id
        super().__init__(f"{resource_type} not found: {record_id}")


class ConcurrentUpdateError(VerificationPlatformError):
    """An optimistic-lock update found a different version or state than expected."""
    pass
