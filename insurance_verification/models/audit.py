"""Audit log models for access tracking against protected data."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .enums import AuditAction, ResourceType


class ClientMetadata(BaseModel):
    """Where an action came from."""
    ip_address: str = Field(default="unknown")
    user_agent: str = Field(default="unknown")
    correlation_id: Optional[str] = None


class AuditEntry(BaseModel):
    """An append-only record of an action against protected data."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    actor_id: str = Field(..., description="Who performed the action")
    action: AuditAction = Field(..., description="What was done")
    resource_type: ResourceType = Field(..., description="Kind of resource touched")
    resource_id: str = Field(..., description="Resource identifier")
    success: bool = Field(default=True)
    error_message: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    client: ClientMetadata = Field(default_factory=ClientMetadata)


class AuditFilters(BaseModel):
    """Filters for audit queries. An empty filter set matches every entry."""
    actor_id: Optional[str] = None
    resource_type: Optional[ResourceType] = None
    action: Optional[AuditAction] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: Optional[int] = Field(default=None, ge=1)


class ComplianceReport(BaseModel):
    """Aggregate access statistics for a period."""
    start: datetime
    end: datetime
    total_accesses: int = 0
    unauthorized_attempts: int = 0
    data_exports: int = 0
    retention_violations: List[str] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
