"""Repository for verification records."""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from insurance_verification.models.enums import VerificationStatus
from insurance_verification.models.verification import AIInsights, Coverage, PatientRecord, Verification
from insurance_verification.storage.record_store import RecordStore
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)


class VerificationRepository:
    """Maps Verification domain objects onto the record store."""

    def __init__(self, store: RecordStore):
        """
        Initialize the repository.

        Args:
            store: Record store for the verification_requests table
        """
        self.store = store

    async def create(self, verification: Verification) -> Verification:
        """Persist a new verification."""
        await self.store.insert(self._to_record(verification))
        logger.info("Verification stored", verification_id=verification.id, status=verification.status.value)
        return verification

    async def get(self, verification_id: str) -> Optional[Verification]:
        record = await self.store.get(verification_id)
        return self.to_verification(record) if record else None

    async def list(
        self,
        status: Optional[VerificationStatus] = None,
        limit: Optional[int] = 100,
        offset: int = 0,
    ) -> List[Verification]:
        """List verifications newest first."""
        filters = {"status": status.value} if status else None
        records = await self.store.list(filters=filters, limit=limit, offset=offset)
        return [self.to_verification(r) for r in records]

    async def resolve(
        self,
        verification_id: str,
        status: VerificationStatus,
        coverage: Coverage,
        next_steps: List[str],
        ai_insights: Optional[AIInsights],
        expected_status: VerificationStatus = VerificationStatus.PENDING,
    ) -> Verification:
        """
        Write a terminal outcome in one atomic update.

        Status, coverage, next steps and insights change together, and only
        if the record still holds ``expected_status``.
        """
        record = await self.store.update(
            verification_id,
            {
                "status": status.value,
                "coverage": coverage.model_dump(mode="json"),
                "next_steps": list(next_steps),
                "ai_insights": ai_insights.model_dump(mode="json") if ai_insights else None,
            },
            expected={"status": expected_status.value},
        )
        logger.info("Verification resolved", verification_id=verification_id, status=status.value)
        return self.to_verification(record)

    async def update_prior_auth(
        self,
        verification_id: str,
        status: VerificationStatus,
        next_steps: List[str],
        prior_auth_request_id: Optional[str],
        auth_number: Optional[str] = None,
        expected_status: VerificationStatus = VerificationStatus.REQUIRES_AUTH,
    ) -> Verification:
        """Apply a prior authorization outcome to a requires_auth verification."""
        fields: Dict[str, Any] = {
            "status": status.value,
            "next_steps": list(next_steps),
            "prior_auth_request_id": prior_auth_request_id,
        }
        if auth_number is not None:
            fields["auth_number"] = auth_number
        record = await self.store.update(
            verification_id, fields, expected={"status": expected_status.value}
        )
        return self.to_verification(record)

    async def link_prior_auth(self, verification_id: str, prior_auth_request_id: str) -> Verification:
        record = await self.store.update(
            verification_id,
            {"prior_auth_request_id": prior_auth_request_id},
            expected={"status": VerificationStatus.REQUIRES_AUTH.value},
        )
        return self.to_verification(record)

    async def count_older_than(self, cutoff: datetime) -> int:
        return await self.store.count(before=cutoff)

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await self.store.delete(before=cutoff)

    @staticmethod
    def _to_record(verification: Verification) -> Dict[str, Any]:
        patient = verification.patient
        return {
            "id": verification.id,
            "version": verification.version,
            "created_at": verification.created_at,
            "updated_at": verification.updated_at,
            "patient_first_name": patient.first_name,
            "patient_last_name": patient.last_name,
            "patient_dob": patient.date_of_birth.isoformat(),
            "insurance_company": patient.insurance_company,
            "policy_number": patient.policy_number,
            "member_id": patient.member_id,
            "group_number": patient.group_number,
            "subscriber_name": patient.subscriber_name,
            "status": verification.status.value,
            "coverage": verification.coverage.model_dump(mode="json"),
            "next_steps": list(verification.next_steps),
            "ai_insights": verification.ai_insights.model_dump(mode="json") if verification.ai_insights else None,
            "prior_auth_request_id": verification.prior_auth_request_id,
            "auth_number": verification.auth_number,
        }

    @staticmethod
    def to_verification(record: Dict[str, Any]) -> Verification:
        """Convert a stored record to a Verification."""
        patient = PatientRecord(
            first_name=record["patient_first_name"],
            last_name=record["patient_last_name"],
            date_of_birth=date.fromisoformat(record["patient_dob"]),
            insurance_company=record["insurance_company"],
            policy_number=record["policy_number"],
            member_id=record["member_id"],
            group_number=record.get("group_number"),
            subscriber_name=record.get("subscriber_name"),
        )
        ai_insights = record.get("ai_insights")
        return Verification(
            id=record["id"],
            version=record["version"],
            created_at=record["created_at"],
            updated_at=record["updated_at"],
            patient=patient,
            status=VerificationStatus(record["status"]),
            coverage=Coverage(**(record.get("coverage") or {})),
            next_steps=record.get("next_steps") or [],
            ai_insights=AIInsights(**ai_insights) if ai_insights else None,
            prior_auth_request_id=record.get("prior_auth_request_id"),
            auth_number=record.get("auth_number"),
        )
