"""Repository for prior authorization requests."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from insurance_verification.models.enums import PriorAuthStatus
from insurance_verification.models.prior_auth import PriorAuthRequest
from insurance_verification.storage.record_store import RecordStore
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)


class PriorAuthRepository:
    """Maps PriorAuthRequest objects onto the record store."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def create(self, request: PriorAuthRequest) -> PriorAuthRequest:
        data = request.model_dump()
        data["urgency"] = request.urgency.value
        data["status"] = request.status.value
        await self.store.insert(data)
        logger.info(
            "Prior auth request stored",
            prior_auth_id=request.id,
            verification_id=request.verification_id,
        )
        return request

    async def get(self, request_id: str) -> Optional[PriorAuthRequest]:
        record = await self.store.get(request_id)
        return PriorAuthRequest(**record) if record else None

    async def list_for_verification(self, verification_id: str) -> List[PriorAuthRequest]:
        records = await self.store.list(filters={"verification_id": verification_id})
        return [PriorAuthRequest(**r) for r in records]

    async def update(
        self,
        request_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> PriorAuthRequest:
        """
        Update a request with optimistic locking.

        Raises:
            ConcurrentUpdateError: If expected_version no longer matches
        """
        values = dict(fields)
        if isinstance(values.get("status"), PriorAuthStatus):
            values["status"] = values["status"].value
        expected = {"version": expected_version} if expected_version is not None else None
        record = await self.store.update(request_id, values, expected=expected)
        logger.info("Prior auth request updated", prior_auth_id=request_id, status=record["status"])
        return PriorAuthRequest(**record)

    async def count_older_than(self, cutoff: datetime) -> int:
        return await self.store.count(before=cutoff)

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await self.store.delete(before=cutoff)
