"""Notification records produced by the dispatcher."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from .enums import NotificationChannelType, NotificationType, NotificationUrgency


class ChannelDelivery(BaseModel):
    """Outcome of delivering one notification over one channel."""
    channel: NotificationChannelType
    delivered: bool = False
    error: Optional[str] = None
    attempted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Notification(BaseModel):
    """A message queued in reaction to a verification status."""
    id: str = Field(default_factory=lambda: f"NOTIF-{uuid4().hex[:12]}")
    type: NotificationType
    urgency: NotificationUrgency
    verification_id: str
    subject: str
    message: str
    recipients: List[str] = Field(default_factory=list)
    summary: Dict[str, Any] = Field(default_factory=dict)
    channels: List[NotificationChannelType] = Field(default_factory=list)
    deliveries: List[ChannelDelivery] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = Field(default="pending")  # pending | sent | partial | failed | skipped
