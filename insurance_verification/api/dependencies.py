"""Service wiring and FastAPI dependencies."""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insurance_verification.config.settings import Settings
from insurance_verification.config.logging_config import get_logger
from insurance_verification.payer import HttpPayerGateway, PayerChannel, SimulatedPayerGateway
from insurance_verification.reasoning import Classifier, create_classifier
from insurance_verification.security.access_control import AccessController, Actor
from insurance_verification.services.compliance_service import ComplianceService, default_retention_policies
from insurance_verification.services.notification_channels import (
    EmailChannel,
    NotificationChannel,
    SlackWebhookChannel,
)
from insurance_verification.services.notification_service import NotificationDispatcher
from insurance_verification.services.prior_auth_service import PriorAuthWorkflow
from insurance_verification.services.verification_service import VerificationLifecycle
from insurance_verification.storage.audit_logger import AuditLogger
from insurance_verification.storage.models import AuditLogModel, PriorAuthRequestModel, VerificationModel
from insurance_verification.storage.prior_auth_repository import PriorAuthRepository
from insurance_verification.storage.record_store import SQLAlchemyRecordStore
from insurance_verification.storage.verification_repository import VerificationRepository

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything the routes need, built once per application."""
    settings: Settings
    classifier: Classifier
    payer: PayerChannel
    dispatcher: NotificationDispatcher
    audit_logger: AuditLogger
    verifications: VerificationLifecycle
    prior_auth: PriorAuthWorkflow
    compliance: ComplianceService
    channels: List[NotificationChannel] = field(default_factory=list)

    async def close(self) -> None:
        await self.dispatcher.close()
        await self.classifier.close()
        await self.payer.close()


def create_payer_channel(settings: Settings) -> PayerChannel:
    """Build the payer channel selected by ``settings.payer_channel``."""
    if settings.payer_channel == "http":
        if not settings.payer_api_url:
            raise ValueError("PAYER_API_URL is required for the http payer channel")
        return HttpPayerGateway(
            base_url=settings.payer_api_url,
            api_key=settings.payer_api_key,
            timeout=settings.payer_timeout_seconds,
        )
    return SimulatedPayerGateway(
        scenario=settings.payer_scenario,
        approval_rate=settings.payer_approval_rate,
    )


def create_notification_channels(settings: Settings) -> List[NotificationChannel]:
    """Build the enabled channels; a flag without its URL is skipped with a warning."""
    channels: List[NotificationChannel] = []
    if settings.email_enabled:
        if settings.email_service_url:
            channels.append(EmailChannel(settings.email_service_url, timeout=settings.notification_timeout_seconds))
        else:
            logger.warning("Email notifications enabled without EMAIL_SERVICE_URL; skipping")
    if settings.slack_enabled:
        if settings.slack_webhook_url:
            channels.append(SlackWebhookChannel(
                settings.slack_webhook_url,
                app_base_url=settings.app_base_url,
                timeout=settings.notification_timeout_seconds,
            ))
        else:
            logger.warning("Slack notifications enabled without SLACK_WEBHOOK_URL; skipping")
    return channels


def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    classifier: Optional[Classifier] = None,
    payer: Optional[PayerChannel] = None,
    channels: Optional[Sequence[NotificationChannel]] = None,
) -> ServiceContainer:
    """
    Wire stores, repositories and services from explicit settings.

    Args:
        settings: Application settings
        session_factory: Async session factory for the database
        classifier: Override the configured classifier (tests, demos)
        payer: Override the configured payer channel
        channels: Override the configured notification channels
    """
    verification_repo = VerificationRepository(
        SQLAlchemyRecordStore(session_factory, VerificationModel, "verification")
    )
    prior_auth_repo = PriorAuthRepository(
        SQLAlchemyRecordStore(session_factory, PriorAuthRequestModel, "prior_auth")
    )
    audit_logger = AuditLogger(
        SQLAlchemyRecordStore(session_factory, AuditLogModel, "audit_log", order_column="timestamp")
    )
    access = AccessController(audit_logger)

    channel_list = list(channels) if channels is not None else create_notification_channels(settings)
    dispatcher = NotificationDispatcher(
        channels=channel_list,
        staff_recipients=settings.email_recipients,
        channel_timeout=settings.notification_timeout_seconds,
    )
    classifier = classifier or create_classifier(settings)
    payer = payer or create_payer_channel(settings)

    lifecycle = VerificationLifecycle(
        repository=verification_repo,
        classifier=classifier,
        audit_logger=audit_logger,
        access_controller=access,
        dispatcher=dispatcher,
        classifier_timeout=settings.classifier_budget_seconds,
    )
    workflow = PriorAuthWorkflow(
        repository=prior_auth_repo,
        verifications=verification_repo,
        lifecycle=lifecycle,
        payer=payer,
        audit_logger=audit_logger,
        access_controller=access,
        submit_timeout=settings.payer_timeout_seconds,
    )
    compliance = ComplianceService(
        verifications=verification_repo,
        prior_auths=prior_auth_repo,
        audit_logger=audit_logger,
        access_controller=access,
        policies=default_retention_policies(settings.retention_period_days),
    )
    return ServiceContainer(
        settings=settings,
        classifier=classifier,
        payer=payer,
        dispatcher=dispatcher,
        audit_logger=audit_logger,
        verifications=lifecycle,
        prior_auth=workflow,
        compliance=compliance,
        channels=channel_list,
    )


def get_container(request: Request) -> ServiceContainer:
    """Get the service container created at startup."""
    return request.app.state.container


def get_lifecycle(container: ServiceContainer = Depends(get_container)) -> VerificationLifecycle:
    return container.verifications


def get_prior_auth_workflow(container: ServiceContainer = Depends(get_container)) -> PriorAuthWorkflow:
    return container.prior_auth


def get_compliance_service(container: ServiceContainer = Depends(get_container)) -> ComplianceService:
    return container.compliance


def get_actor(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    """Caller identity from X-User-Id / X-User-Role plus client metadata."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return Actor(
        user_id=x_user_id,
        role=(x_user_role or "user").lower(),
        ip_address=request.client.host if request.client else "unknown",
        user_agent=request.headers.get("user-agent", "unknown"),
    )
