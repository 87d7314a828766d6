"""Access control and PHI masking."""
from .access_control import AccessController, Actor, SYSTEM_ACTOR, ROLE_PERMISSIONS, is_allowed
from .masking import mask_for_display, MASK_TOKEN

__all__ = [
    "AccessController",
    "Actor",
    "SYSTEM_ACTOR",
    "ROLE_PERMISSIONS",
    "is_allowed",
    "mask_for_display",
    "MASK_TOKEN",
]
