"""SQLAlchemy ORM models for database tables."""
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, JSON, Index
from sqlalchemy.orm import declarative_base


def _utcnow():
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


Base = declarative_base()


class VerificationModel(Base):
    """Database model for eligibility verification requests."""
    __tablename__ = "verification_requests"

    id = Column(String(36), primary_key=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Patient record (immutable after insert)
    patient_first_name = Column(String(100), nullable=False)
    patient_last_name = Column(String(100), nullable=False)
    patient_dob = Column(String(10), nullable=False)
    insurance_company = Column(String(200), nullable=False)
    policy_number = Column(String(20), nullable=False)
    member_id = Column(String(100), nullable=False)
    group_number = Column(String(100), nullable=True)
    subscriber_name = Column(String(200), nullable=True)

    # Outcome
    status = Column(String(20), nullable=False, default="pending")
    coverage = Column(JSON, nullable=True, default=dict)
    next_steps = Column(JSON, nullable=True, default=list)
    ai_insights = Column(JSON, nullable=True)

    # Prior authorization link
    prior_auth_request_id = Column(String(36), nullable=True)
    auth_number = Column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_verification_requests_created_at", "created_at"),
        Index("ix_verification_requests_status", "status"),
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "patient_first_name": self.patient_first_name,
            "patient_last_name": self.patient_last_name,
            "patient_dob": self.patient_dob,
            "insurance_company": self.insurance_company,
            "policy_number": self.policy_number,
            "member_id": self.member_id,
            "group_number": self.group_number,
            "subscriber_name": self.subscriber_name,
            "status": self.status,
            "coverage": self.coverage or {},
            "next_steps": self.next_steps or [],
            "ai_insights": self.ai_insights,
            "prior_auth_request_id": self.prior_auth_request_id,
            "auth_number": self.auth_number,
        }


class PriorAuthRequestModel(Base):
    """Database model for prior authorization requests."""
    __tablename__ = "prior_auth_requests"

    id = Column(String(36), primary_key=True)
    # Lookup reference only; verifications own no prior auth rows
    verification_id = Column(String(36), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    patient_name = Column(String(200), nullable=False)
    insurance_company = Column(String(200), nullable=False)
    policy_number = Column(String(20), nullable=False)

    service_requested = Column(String(200), nullable=False)
    urgency = Column(String(20), nullable=False, default="routine")
    clinical_justification = Column(Text, nullable=False)
    requested_by = Column(String(100), nullable=False)

    status = Column(String(30), nullable=False, default="pending")
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    response_received_at = Column(DateTime(timezone=True), nullable=True)
    auth_number = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_prior_auth_requests_verification_id", "verification_id"),
        Index("ix_prior_auth_requests_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "verification_id": self.verification_id,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "patient_name": self.patient_name,
            "insurance_company": self.insurance_company,
            "policy_number": self.policy_number,
            "service_requested": self.service_requested,
            "urgency": self.urgency,
            "clinical_justification": self.clinical_justification,
            "requested_by": self.requested_by,
            "status": self.status,
            "submitted_at": self.submitted_at,
            "response_received_at": self.response_received_at,
            "auth_number": self.auth_number,
            "notes": self.notes,
        }


class AuditLogModel(Base):
    """Database model for HIPAA audit log entries (append-only)."""
    __tablename__ = "hipaa_audit_logs"

    id = Column(String(36), primary_key=True)
    # Mirrors the timestamp so retention sweeps can filter every table on created_at
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    actor_id = Column(String(100), nullable=False)
    action = Column(String(20), nullable=False)
    resource_type = Column(String(30), nullable=False)
    resource_id = Column(String(100), nullable=False)
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    correlation_id = Column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_hipaa_audit_logs_timestamp", "timestamp"),
        Index("ix_hipaa_audit_logs_actor_id", "actor_id"),
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "created_at": self.created_at,
            "timestamp": self.timestamp,
            "actor_id": self.actor_id,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "success": self.success,
            "error_message": self.error_message,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "correlation_id": self.correlation_id,
        }
