"""
Shared fixtures: in-memory SQLite stores, a fake classifier, recording
notification channels and the services wired over them.
"""
import asyncio
from datetime import date
from typing import List, Optional

import pytest
import pytest_asyncio

from insurance_verification.models.enums import NotificationChannelType, UserRole
from insurance_verification.models.notification import Notification
from insurance_verification.payer.simulated_gateway import SimulatedPayerGateway
from insurance_verification.reasoning.fake_classifier import FakeClassifier
from insurance_verification.security.access_control import AccessController, Actor
from insurance_verification.services.compliance_service import ComplianceService
from insurance_verification.services.notification_channels import NotificationChannel
from insurance_verification.services.notification_service import NotificationDispatcher
from insurance_verification.services.prior_auth_service import PriorAuthWorkflow
from insurance_verification.services.verification_service import VerificationLifecycle
from insurance_verification.storage.audit_logger import AuditLogger
from insurance_verification.storage.database import create_engine, create_session_factory, create_tables
from insurance_verification.storage.models import AuditLogModel, PriorAuthRequestModel, VerificationModel
from insurance_verification.storage.prior_auth_repository import PriorAuthRepository
from insurance_verification.storage.record_store import SQLAlchemyRecordStore
from insurance_verification.storage.verification_repository import VerificationRepository

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingChannel(NotificationChannel):
    """Channel that records what it was asked to send, or fails on demand."""

    def __init__(
        self,
        channel_type: NotificationChannelType,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self._channel_type = channel_type
        self.error = error
        self.delay = delay
        self.sent: List[Notification] = []

    @property
    def channel_type(self) -> NotificationChannelType:
        return self._channel_type

    async def send(self, notification: Notification) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append(notification)


def patient_data(**overrides):
    data = {
        "first_name": "Jane",
        "last_name": "Doe",
        "date_of_birth": "1985-04-12",
        "insurance_company": "Aetna",
        "policy_number": "AB12345678",
        "member_id": "MEM998877",
        "group_number": "GRP100",
    }
    data.update(overrides)
    return data


@pytest.fixture
def today():
    return date(2026, 10, 19)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_engine(TEST_DATABASE_URL)
    await create_tables(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def verification_store(session_factory):
    return SQLAlchemyRecordStore(session_factory, VerificationModel, "verification")


@pytest.fixture
def verification_repo(verification_store):
    return VerificationRepository(verification_store)


@pytest.fixture
def prior_auth_repo(session_factory):
    return PriorAuthRepository(SQLAlchemyRecordStore(session_factory, PriorAuthRequestModel, "prior_auth"))


@pytest.fixture
def audit_store(session_factory):
    return SQLAlchemyRecordStore(session_factory, AuditLogModel, "audit_log", order_column="timestamp")


@pytest.fixture
def audit_logger(audit_store):
    return AuditLogger(audit_store)


@pytest.fixture
def access_controller(audit_logger):
    return AccessController(audit_logger)


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def email_channel():
    return RecordingChannel(NotificationChannelType.EMAIL)


@pytest.fixture
def chat_channel():
    return RecordingChannel(NotificationChannelType.CHAT)


@pytest.fixture
def dispatcher(email_channel, chat_channel):
    return NotificationDispatcher(
        channels=[email_channel, chat_channel],
        staff_recipients=["frontdesk@clinic.example"],
        channel_timeout=1.0,
    )


@pytest.fixture
def lifecycle(verification_repo, classifier, audit_logger, access_controller, dispatcher):
    return VerificationLifecycle(
        repository=verification_repo,
        classifier=classifier,
        audit_logger=audit_logger,
        access_controller=access_controller,
        dispatcher=dispatcher,
        classifier_timeout=5.0,
    )


@pytest.fixture
def payer():
    return SimulatedPayerGateway(scenario="approve")


@pytest.fixture
def workflow(prior_auth_repo, verification_repo, lifecycle, payer, audit_logger, access_controller):
    return PriorAuthWorkflow(
        repository=prior_auth_repo,
        verifications=verification_repo,
        lifecycle=lifecycle,
        payer=payer,
        audit_logger=audit_logger,
        access_controller=access_controller,
        submit_timeout=5.0,
    )


@pytest.fixture
def compliance(verification_repo, prior_auth_repo, audit_logger, access_controller):
    return ComplianceService(
        verifications=verification_repo,
        prior_auths=prior_auth_repo,
        audit_logger=audit_logger,
        access_controller=access_controller,
    )


@pytest.fixture
def staff():
    return Actor(user_id="staff-1", role=UserRole.STAFF.value, ip_address="10.0.0.5", user_agent="pytest")


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=UserRole.ADMIN.value)


@pytest.fixture
def viewer():
    return Actor(user_id="viewer-1", role=UserRole.USER.value)
