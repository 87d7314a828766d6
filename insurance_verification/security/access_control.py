"""Role-based access control for actions on protected data."""
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, FrozenSet, Optional, Union

from insurance_verification.exceptions import AccessDenied
from insurance_verification.models.audit import AuditEntry, ClientMetadata
from insurance_verification.models.enums import AuditAction, ResourceType, UserRole
from insurance_verification.config.logging_config import get_logger
from insurance_verification.config.request_context import get_correlation_id

if TYPE_CHECKING:
    from insurance_verification.storage.audit_logger import AuditLogger

logger = get_logger(__name__)


ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[AuditAction]] = {
    UserRole.ADMIN: frozenset({
        AuditAction.VIEW, AuditAction.CREATE, AuditAction.UPDATE,
        AuditAction.DELETE, AuditAction.EXPORT, AuditAction.PRINT,
    }),
    UserRole.STAFF: frozenset({
        AuditAction.VIEW, AuditAction.CREATE, AuditAction.UPDATE, AuditAction.EXPORT,
    }),
    UserRole.MANAGER: frozenset({
        AuditAction.VIEW, AuditAction.EXPORT, AuditAction.PRINT,
    }),
    UserRole.USER: frozenset({AuditAction.VIEW}),
}


@dataclass(frozen=True)
class Actor:
    """The caller performing an action."""
    user_id: str
    role: str
    ip_address: str = "unknown"
    user_agent: str = "unknown"

    def client_metadata(self) -> ClientMetadata:
        return ClientMetadata(
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            correlation_id=get_correlation_id(),
        )


SYSTEM_ACTOR = Actor(user_id="system", role=UserRole.ADMIN.value, user_agent="system")


def is_allowed(role: Union[UserRole, str], action: Union[AuditAction, str]) -> bool:
    """Check a role against its allow-list. Unknown roles have no permissions."""
    try:
        role_enum = UserRole(role)
    except ValueError:
        return False
    return AuditAction(action) in ROLE_PERMISSIONS[role_enum]


class AccessController:
    """
    Checks callers against the role allow-lists.
    Denied attempts are written to the audit log before AccessDenied is raised.
    """

    def __init__(self, audit_logger: "AuditLogger"):
        self.audit_logger = audit_logger

    async def require(
        self,
        actor: Actor,
        action: AuditAction,
        resource_type: ResourceType,
        resource_id: Optional[str] = None,
    ) -> None:
        """
        Ensure the actor may perform the action.

        Raises:
            AccessDenied: If the actor's role does not allow the action
        """
        if is_allowed(actor.role, action):
            return

        error = AccessDenied(actor.role, action.value, resource_type.value)
        logger.warning(
            "Access denied",
            actor_id=actor.user_id,
            role=actor.role,
            action=action.value,
            resource_type=resource_type.value,
        )
        await self.audit_logger.record(AuditEntry(
            actor_id=actor.user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id or "*",
            success=False,
            error_message=str(error),
            client=actor.client_metadata(),
        ))
        raise error
