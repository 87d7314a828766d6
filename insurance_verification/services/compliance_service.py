"""Retention enforcement and compliance reporting."""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from insurance_verification.models.audit import AuditEntry, AuditFilters, ComplianceReport
from insurance_verification.models.enums import AuditAction, ResourceType
from insurance_verification.security.access_control import SYSTEM_ACTOR, AccessController, Actor
from insurance_verification.storage.audit_logger import AuditLogger
from insurance_verification.storage.prior_auth_repository import PriorAuthRepository
from insurance_verification.storage.verification_repository import VerificationRepository
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_RETENTION_DAYS = 2555  # 7 years
RETENTION_RESOURCE_ID = "bulk_retention_cleanup"


@dataclass(frozen=True)
class RetentionPolicy:
    """How long one record type is kept and whether it is purged automatically."""
    resource_type: str
    retention_period_days: int
    auto_delete_enabled: bool

    def cutoff(self, now: datetime) -> datetime:
        return now - timedelta(days=self.retention_period_days)


def default_retention_policies(retention_days: int = DEFAULT_RETENTION_DAYS) -> List[RetentionPolicy]:
    """Verification and prior auth records are purged; audit logs need manual review."""
    return [
        RetentionPolicy("verification_requests", retention_days, auto_delete_enabled=True),
        RetentionPolicy("prior_auth_requests", retention_days, auto_delete_enabled=True),
        RetentionPolicy("audit_logs", retention_days, auto_delete_enabled=False),
    ]


class ComplianceService:
    """Applies retention policies and summarizes audit activity."""

    def __init__(
        self,
        verifications: VerificationRepository,
        prior_auths: PriorAuthRepository,
        audit_logger: AuditLogger,
        access_controller: AccessController,
        policies: Optional[List[RetentionPolicy]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.audit_logger = audit_logger
        self.access = access_controller
        self.policies = policies or default_retention_policies()
        self.clock = clock
        self._counters: Dict[str, Callable[[datetime], Awaitable[int]]] = {
            "verification_requests": verifications.count_older_than,
            "prior_auth_requests": prior_auths.count_older_than,
            "audit_logs": audit_logger.count_older_than,
        }
        self._deleters: Dict[str, Callable[[datetime], Awaitable[int]]] = {
            "verification_requests": verifications.delete_older_than,
            "prior_auth_requests": prior_auths.delete_older_than,
            "audit_logs": audit_logger.delete_older_than,
        }

    def policy_for(self, resource_type: str) -> RetentionPolicy:
        for policy in self.policies:
            if policy.resource_type == resource_type:
                return policy
        raise KeyError(resource_type)

    async def enforce_retention(self, actor: Actor = SYSTEM_ACTOR) -> Dict[str, int]:
        """
        Delete records past retention for policies with auto-delete enabled.

        A failing sweep is logged and recorded as a failed audit ``delete``
        entry; the remaining policies still run.

        Returns:
            Number of records deleted per resource type
        """
        await self.access.require(actor, AuditAction.DELETE, ResourceType.PATIENT_DATA, RETENTION_RESOURCE_ID)
        now = self.clock()
        deleted: Dict[str, int] = {}
        for policy in self.policies:
            if not policy.auto_delete_enabled:
                continue
            try:
                deleted[policy.resource_type] = await self._deleters[policy.resource_type](policy.cutoff(now))
            except Exception as e:
                logger.error("Retention enforcement failed", resource_type=policy.resource_type, error=str(e))
                await self.audit_logger.record(AuditEntry(
                    actor_id=SYSTEM_ACTOR.user_id,
                    action=AuditAction.DELETE,
                    resource_type=ResourceType.PATIENT_DATA,
                    resource_id=RETENTION_RESOURCE_ID,
                    success=False,
                    error_message=f"Retention cleanup failed for {policy.resource_type}: {e}",
                    client=SYSTEM_ACTOR.client_metadata(),
                ))

        logger.info("Retention enforced", deleted=deleted)
        return deleted

    async def query_audit_log(self, actor: Actor, filters: Optional[AuditFilters] = None) -> List[AuditEntry]:
        """Audit entries matching the filters, newest first."""
        await self.access.require(actor, AuditAction.VIEW, ResourceType.PATIENT_DATA, "audit_logs")
        return await self.audit_logger.query(filters)

    async def purge_audit_logs(self, actor: Actor) -> int:
        """Delete audit entries past retention after manual review. Admin only."""
        await self.access.require(actor, AuditAction.DELETE, ResourceType.PATIENT_DATA, "audit_logs")
        policy = self.policy_for("audit_logs")
        count = await self.audit_logger.delete_older_than(policy.cutoff(self.clock()))
        await self.audit_logger.record(AuditEntry(
            actor_id=actor.user_id,
            action=AuditAction.DELETE,
            resource_type=ResourceType.PATIENT_DATA,
            resource_id="audit_logs",
            success=True,
            client=actor.client_metadata(),
        ))
        logger.warning("Audit logs purged after manual review", count=count, actor_id=actor.user_id)
        return count

    async def generate_compliance_report(
        self,
        start: datetime,
        end: datetime,
        actor: Actor = SYSTEM_ACTOR,
    ) -> ComplianceReport:
        """
        Summarize audit activity in [start, end] and retention status.

        Args:
            start: Period start (inclusive)
            end: Period end (inclusive)
            actor: Caller (needs view permission)
        """
        await self.access.require(actor, AuditAction.VIEW, ResourceType.PATIENT_DATA, "compliance_report")
        entries = await self.audit_logger.query(AuditFilters(start=start, end=end))

        now = self.clock()
        violations = []
        for policy in self.policies:
            count = await self._counters[policy.resource_type](policy.cutoff(now))
            if count > 0:
                violations.append(f"{policy.resource_type}: {count} records exceed retention period")

        report = ComplianceReport(
            start=start,
            end=end,
            total_accesses=len(entries),
            unauthorized_attempts=sum(1 for e in entries if not e.success),
            data_exports=sum(1 for e in entries if e.action in (AuditAction.EXPORT, AuditAction.PRINT)),
            retention_violations=violations,
        )
        logger.info(
            "Compliance report generated",
            total_accesses=report.total_accesses,
            unauthorized_attempts=report.unauthorized_attempts,
        )
        return report
