"""Tests for retention enforcement and compliance reporting."""
from datetime import datetime, timedelta, timezone

import pytest

from insurance_verification.exceptions import AccessDenied
from insurance_verification.models.audit import AuditEntry, AuditFilters
from insurance_verification.models.enums import AuditAction, ResourceType
from insurance_verification.models.verification import Verification, validate_patient_record
from insurance_verification.services.compliance_service import (
    ComplianceService,
    RetentionPolicy,
    default_retention_policies,
)

from conftest import patient_data

YEARS_AGO = datetime.now(timezone.utc) - timedelta(days=3000)


def old_verification():
    return Verification(patient=validate_patient_record(patient_data()), created_at=YEARS_AGO)


def entry(**overrides):
    data = {
        "actor_id": "staff-1",
        "action": AuditAction.VIEW,
        "resource_type": ResourceType.VERIFICATION,
        "resource_id": "ver-001",
    }
    data.update(overrides)
    return AuditEntry(**data)


class TestRetentionPolicies:

    def test_defaults(self):
        policies = {p.resource_type: p for p in default_retention_policies()}

        assert policies["verification_requests"].retention_period_days == 2555
        assert policies["verification_requests"].auto_delete_enabled
        assert policies["prior_auth_requests"].auto_delete_enabled
        assert not policies["audit_logs"].auto_delete_enabled

    def test_cutoff(self):
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)
        assert RetentionPolicy("audit_logs", 10, False).cutoff(now) == datetime(2026, 10, 9, tzinfo=timezone.utc)


class TestEnforceRetention:

    @pytest.mark.asyncio
    async def test_deletes_expired_records_but_keeps_audit_logs(
        self, compliance, verification_repo, audit_logger, lifecycle, staff
    ):
        await verification_repo.create(old_verification())
        recent = await lifecycle.submit(staff, patient_data())
        await audit_logger.record(entry(timestamp=YEARS_AGO))

        deleted = await compliance.enforce_retention()

        assert deleted == {"verification_requests": 1, "prior_auth_requests": 0}
        assert [v.id for v in await verification_repo.list()] == [recent.id]
        assert await audit_logger.count_older_than(YEARS_AGO + timedelta(days=1)) == 1

    @pytest.mark.asyncio
    async def test_failed_sweep_is_audited_and_others_continue(
        self, verification_repo, prior_auth_repo, audit_logger, access_controller, monkeypatch
    ):
        async def broken_delete(cutoff):
            raise RuntimeError("table locked")

        monkeypatch.setattr(verification_repo, "delete_older_than", broken_delete)
        compliance = ComplianceService(verification_repo, prior_auth_repo, audit_logger, access_controller)

        deleted = await compliance.enforce_retention()

        assert deleted == {"prior_auth_requests": 0}
        failures = await audit_logger.query(AuditFilters(action=AuditAction.DELETE))
        assert len(failures) == 1
        assert failures[0].success is False
        assert failures[0].actor_id == "system"
        assert failures[0].resource_id == "bulk_retention_cleanup"
        assert "table locked" in failures[0].error_message

    @pytest.mark.asyncio
    async def test_staff_cannot_enforce_retention(self, compliance, staff):
        with pytest.raises(AccessDenied):
            await compliance.enforce_retention(staff)

    @pytest.mark.asyncio
    async def test_admin_purges_audit_logs_after_review(self, compliance, audit_logger, admin):
        await audit_logger.record(entry(timestamp=YEARS_AGO))
        await audit_logger.record(entry())

        assert await compliance.purge_audit_logs(admin) == 1

        remaining = await audit_logger.query()
        assert len(remaining) == 2
        assert remaining[0].action == AuditAction.DELETE
        assert remaining[0].resource_id == "audit_logs"


class TestComplianceReport:

    @pytest.mark.asyncio
    async def test_report_counts(self, compliance, verification_repo, audit_logger):
        now = datetime.now(timezone.utc)
        await audit_logger.record(entry())
        await audit_logger.record(entry(success=False, error_message="denied"))
        await audit_logger.record(entry(action=AuditAction.EXPORT, resource_id="bulk_export"))
        await audit_logger.record(entry(action=AuditAction.PRINT))
        await audit_logger.record(entry(timestamp=now - timedelta(days=90)))
        await verification_repo.create(old_verification())

        report = await compliance.generate_compliance_report(
            now - timedelta(days=30), datetime.now(timezone.utc)
        )

        assert report.total_accesses == 4
        assert report.unauthorized_attempts == 1
        assert report.data_exports == 2
        assert report.retention_violations == ["verification_requests: 1 records exceed retention period"]

    @pytest.mark.asyncio
    async def test_viewer_may_read_audit_log(self, compliance, audit_logger, viewer):
        await audit_logger.record(entry())

        entries = await compliance.query_audit_log(viewer, AuditFilters(actor_id="staff-1"))

        assert len(entries) == 1
