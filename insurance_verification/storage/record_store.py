"""Generic record store used by the repositories.

Each call runs in its own transaction, so an update is a single atomic
UPDATE statement and readers never see a half-applied change.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Type

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insurance_verification.exceptions import ConcurrentUpdateError, RecordNotFound
from insurance_verification.config.logging_config import get_logger

logger = get_logger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RecordStore(ABC):
    """Store interface: insert, update, get, list (newest first), delete by filter."""

    @abstractmethod
    async def insert(self, record: Mapping[str, Any]) -> str:
        """Insert a record and return its id."""
        pass

    @abstractmethod
    async def update(
        self,
        record_id: str,
        fields: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Apply a partial update atomically.

        Args:
            record_id: Record to update
            fields: Columns to change
            expected: Column values the record must currently hold
                      (e.g. {"version": 3} or {"status": "pending"})

        Returns:
            The updated record

        Raises:
            RecordNotFound: If the record does not exist
            ConcurrentUpdateError: If the expected values do not match
        """
        pass

    @abstractmethod
    async def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def list(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """List records newest first, with equality filters and an inclusive date range."""
        pass

    @abstractmethod
    async def count(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        before: Optional[datetime] = None,
    ) -> int:
        pass

    @abstractmethod
    async def delete(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        before: Optional[datetime] = None,
    ) -> int:
        """Delete matching records and return how many were removed."""
        pass


class SQLAlchemyRecordStore(RecordStore):
    """
    RecordStore over one ORM model.

    The model must expose ``id``, ``created_at`` and ``to_dict()``; models
    with a ``version`` column get it incremented on every update.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: Type[Any],
        resource_name: str,
        order_column: str = "created_at",
    ):
        self.session_factory = session_factory
        self.model = model
        self.resource_name = resource_name
        self.order_column = getattr(model, order_column)
        self._versioned = hasattr(model, "version")
        self._timestamped = hasattr(model, "updated_at")

    def _where(self, statement, filters: Optional[Mapping[str, Any]]):
        for key, value in (filters or {}).items():
            statement = statement.where(getattr(self.model, key) == value)
        return statement

    def _to_dict(self, row: Any) -> Dict[str, Any]:
        data = row.to_dict()
        for key, value in data.items():
            if isinstance(value, datetime):
                data[key] = as_utc(value)
        return data

    async def insert(self, record: Mapping[str, Any]) -> str:
        async with self.session_factory() as session:
            async with session.begin():
                row = self.model(**record)
                session.add(row)
            logger.debug("Record inserted", resource=self.resource_name, record_id=row.id)
            return row.id

    async def update(
        self,
        record_id: str,
        fields: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        values = dict(fields)
        if self._versioned:
            values["version"] = self.model.version + 1
        if self._timestamped:
            values["updated_at"] = datetime.now(timezone.utc)

        async with self.session_factory() as session:
            async with session.begin():
                statement = update(self.model).where(self.model.id == record_id)
                statement = self._where(statement, expected).values(**values)
                result = await session.execute(statement)

                if result.rowcount == 0:
                    current = await session.get(self.model, record_id)
                    if current is None:
                        raise RecordNotFound(self.resource_name, record_id)
                    raise ConcurrentUpdateError(
                        f"{self.resource_name} {record_id} no longer matches {dict(expected or {})}; "
                        f"another operation may have modified it concurrently."
                    )

                refreshed = await session.execute(
                    select(self.model)
                    .where(self.model.id == record_id)
                    .execution_options(populate_existing=True)
                )
                return self._to_dict(refreshed.scalar_one())

    async def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        async with self.session_factory() as session:
            row = await session.get(self.model, record_id)
            return self._to_dict(row) if row is not None else None

    async def list(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        statement = self._where(select(self.model), filters)
        if start is not None:
            statement = statement.where(self.order_column >= start)
        if end is not None:
            statement = statement.where(self.order_column <= end)
        statement = statement.order_by(self.order_column.desc())
        if limit is not None:
            statement = statement.limit(limit)
        if offset:
            statement = statement.offset(offset)

        async with self.session_factory() as session:
            result = await session.execute(statement)
            return [self._to_dict(row) for row in result.scalars().all()]

    async def count(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        before: Optional[datetime] = None,
    ) -> int:
        statement = self._where(select(func.count(self.model.id)), filters)
        if before is not None:
            statement = statement.where(self.model.created_at < before)
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return result.scalar_one()

    async def delete(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        before: Optional[datetime] = None,
    ) -> int:
        statement = self._where(delete(self.model), filters)
        if before is not None:
            statement = statement.where(self.model.created_at < before)
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(statement)
        deleted = result.rowcount or 0
        logger.info("Records deleted", resource=self.resource_name, count=deleted)
        return deleted
