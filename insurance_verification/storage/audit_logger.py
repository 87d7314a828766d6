"""Append-only audit log for access to protected health information."""
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional, Tuple

from insurance_verification.exceptions import AuditWriteFailed
from insurance_verification.models.audit import AuditEntry, AuditFilters, ClientMetadata
from insurance_verification.models.enums import AuditAction, MaskKind, ResourceType
from insurance_verification.retry_policy import RetryPolicy
from insurance_verification.security.masking import mask_for_display
from insurance_verification.storage.record_store import RecordStore
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

AuditErrorHandler = Callable[[AuditWriteFailed, AuditEntry], None]


class AuditLogger:
    """
    Append-only audit logger.

    ``record`` never rejects an entry on business grounds and never raises:
    a failed write is retried once, then reported through the error channel
    (the ``on_error`` callback and ``failures``) while the caller carries on.
    """

    def __init__(
        self,
        store: RecordStore,
        retry_policy: Optional[RetryPolicy] = None,
        on_error: Optional[AuditErrorHandler] = None,
        max_failures_kept: int = 1000,
    ):
        """
        Initialize the audit logger.

        Args:
            store: Record store for the hipaa_audit_logs table
            retry_policy: Write policy (defaults to one immediate retry)
            on_error: Called with the failure and entry after the retry fails
            max_failures_kept: Size of the in-memory failure buffer
        """
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=2, backoff_base=0.0, name="audit_write")
        self.on_error = on_error
        self.failures: Deque[Tuple[AuditWriteFailed, AuditEntry]] = deque(maxlen=max_failures_kept)

    async def record(self, entry: AuditEntry) -> Optional[AuditEntry]:
        """
        Append an entry.

        Returns:
            The stored entry, or None if it could not be written
        """
        try:
            await self.retry_policy.run(self.store.insert, self._to_record(entry))
        except Exception as e:
            failure = AuditWriteFailed(f"Audit write failed for {entry.resource_type.value}/{entry.resource_id}: {e}")
            failure.__cause__ = e
            self.failures.append((failure, entry))
            logger.error(
                "Audit write failed",
                audit_id=entry.id,
                action=entry.action.value,
                resource_type=entry.resource_type.value,
                resource_id=entry.resource_id,
                error=str(e),
            )
            if self.on_error is not None:
                try:
                    self.on_error(failure, entry)
                except Exception as handler_error:
                    logger.error("Audit error handler failed", error=str(handler_error))
            return None

        logger.debug(
            "Audit entry recorded",
            audit_id=entry.id,
            actor_id=entry.actor_id,
            action=entry.action.value,
            resource_type=entry.resource_type.value,
            success=entry.success,
        )
        return entry

    async def log_access(
        self,
        actor_id: str,
        action: AuditAction,
        resource_type: ResourceType,
        resource_id: str,
        success: bool = True,
        error_message: Optional[str] = None,
        client: Optional[ClientMetadata] = None,
    ) -> Optional[AuditEntry]:
        """Convenience wrapper building and recording an entry."""
        return await self.record(AuditEntry(
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            success=success,
            error_message=error_message,
            client=client or ClientMetadata(),
        ))

    async def query(self, filters: Optional[AuditFilters] = None) -> List[AuditEntry]:
        """
        Query entries, newest first.

        Args:
            filters: Actor, resource type, action and date range filters;
                     None or an empty filter set returns every retained entry

        Returns:
            Matching entries ordered by timestamp descending
        """
        filters = filters or AuditFilters()
        equality = {}
        if filters.actor_id:
            equality["actor_id"] = filters.actor_id
        if filters.resource_type:
            equality["resource_type"] = filters.resource_type.value
        if filters.action:
            equality["action"] = filters.action.value

        records = await self.store.list(
            filters=equality,
            start=filters.start,
            end=filters.end,
            limit=filters.limit,
        )
        return [self._to_entry(r) for r in records]

    async def count_older_than(self, cutoff: datetime) -> int:
        return await self.store.count(before=cutoff)

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Remove entries past retention. Only invoked after manual review."""
        return await self.store.delete(before=cutoff)

    @staticmethod
    def mask_for_display(value: Optional[str], kind: MaskKind) -> str:
        """Mask a value for display; see security.masking."""
        return mask_for_display(value, kind)

    @staticmethod
    def _to_record(entry: AuditEntry) -> dict:
        return {
            "id": entry.id,
            "created_at": entry.timestamp,
            "timestamp": entry.timestamp,
            "actor_id": entry.actor_id,
            "action": entry.action.value,
            "resource_type": entry.resource_type.value,
            "resource_id": entry.resource_id,
            "success": entry.success,
            "error_message": entry.error_message,
            "ip_address": entry.client.ip_address,
            "user_agent": entry.client.user_agent,
            "correlation_id": entry.client.correlation_id,
        }

    @staticmethod
    def _to_entry(record: dict) -> AuditEntry:
        return AuditEntry(
            id=record["id"],
            actor_id=record["actor_id"],
            action=AuditAction(record["action"]),
            resource_type=ResourceType(record["resource_type"]),
            resource_id=record["resource_id"],
            success=record["success"],
            error_message=record.get("error_message"),
            timestamp=record["timestamp"],
            client=ClientMetadata(
                ip_address=record.get("ip_address") or "unknown",
                user_agent=record.get("user_agent") or "unknown",
                correlation_id=record.get("correlation_id"),
            ),
        )
