"""Lifecycle transition rules."""
from .transitions import (
    PRIOR_AUTH_TRANSITIONS,
    VERIFICATION_TRANSITIONS,
    assert_prior_auth_transition,
    assert_transition,
    can_transition,
)

__all__ = [
    "PRIOR_AUTH_TRANSITIONS",
    "VERIFICATION_TRANSITIONS",
    "assert_prior_auth_transition",
    "assert_transition",
    "can_transition",
]
