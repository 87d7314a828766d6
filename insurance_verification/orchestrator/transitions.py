"""Allowed status transitions for verifications and prior authorization requests."""
from typing import Dict, FrozenSet

from insurance_verification.exceptions import InvalidTransition
from insurance_verification.models.enums import PriorAuthStatus, VerificationStatus
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

# pending resolves exactly once; requires_auth is the only status that moves again
VERIFICATION_TRANSITIONS: Dict[VerificationStatus, FrozenSet[VerificationStatus]] = {
    VerificationStatus.PENDING: frozenset({
        VerificationStatus.ELIGIBLE,
        VerificationStatus.INELIGIBLE,
        VerificationStatus.REQUIRES_AUTH,
        VerificationStatus.ERROR,
    }),
    VerificationStatus.REQUIRES_AUTH: frozenset({
        VerificationStatus.ELIGIBLE,
        VerificationStatus.REQUIRES_AUTH,
    }),
    VerificationStatus.ELIGIBLE: frozenset(),
    VerificationStatus.INELIGIBLE: frozenset(),
    VerificationStatus.ERROR: frozenset(),
}

PRIOR_AUTH_TRANSITIONS: Dict[PriorAuthStatus, FrozenSet[PriorAuthStatus]] = {
    PriorAuthStatus.PENDING: frozenset({
        PriorAuthStatus.SUBMITTED,
        PriorAuthStatus.APPROVED,
        PriorAuthStatus.DENIED,
        PriorAuthStatus.MORE_INFO_NEEDED,
    }),
    PriorAuthStatus.SUBMITTED: frozenset({
        PriorAuthStatus.APPROVED,
        PriorAuthStatus.DENIED,
        PriorAuthStatus.MORE_INFO_NEEDED,
    }),
    PriorAuthStatus.MORE_INFO_NEEDED: frozenset({
        PriorAuthStatus.SUBMITTED,
        PriorAuthStatus.APPROVED,
        PriorAuthStatus.DENIED,
        PriorAuthStatus.MORE_INFO_NEEDED,
    }),
    PriorAuthStatus.APPROVED: frozenset(),
    PriorAuthStatus.DENIED: frozenset(),
}


def can_transition(current: VerificationStatus, target: VerificationStatus) -> bool:
    return target in VERIFICATION_TRANSITIONS.get(current, frozenset())


def assert_transition(current: VerificationStatus, target: VerificationStatus) -> None:
    """
    Validate a verification status change.

    Raises:
        InvalidTransition: If ``current`` may not move to ``target``
    """
    if not can_transition(current, target):
        logger.warning("Rejected verification transition", current=current.value, target=target.value)
        raise InvalidTransition(current.value, target.value)


def assert_prior_auth_transition(current: PriorAuthStatus, target: PriorAuthStatus) -> None:
    """
    Validate a prior authorization status change.

    Raises:
        InvalidTransition: If the request is closed or the move is not allowed
    """
    if target not in PRIOR_AUTH_TRANSITIONS.get(current, frozenset()):
        logger.warning("Rejected prior auth transition", current=current.value, target=target.value)
        raise InvalidTransition(
            current.value,
            target.value,
            f"Prior authorization in status {current.value} cannot move to {target.value}",
        )
