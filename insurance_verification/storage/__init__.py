"""Storage module for database operations."""
from .database import init_db, close_db, create_engine, create_session_factory, create_tables
from .record_store import RecordStore, SQLAlchemyRecordStore
from .verification_repository import VerificationRepository
from .prior_auth_repository import PriorAuthRepository
from .audit_logger import AuditLogger

__all__ = [
    "init_db",
    "close_db",
    "create_engine",
    "create_session_factory",
    "create_tables",
    "RecordStore",
    "SQLAlchemyRecordStore",
    "VerificationRepository",
    "PriorAuthRepository",
    "AuditLogger",
]
