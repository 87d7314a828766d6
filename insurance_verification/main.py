"""Insurance Verification Service: FastAPI entry point.

Eligibility verification, prior authorization and HIPAA audit logging.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from insurance_verification import __version__
from insurance_verification.api.dependencies import ServiceContainer, build_container
from insurance_verification.api.routes import audit, prior_auth, verifications
from insurance_verification.config.logging_config import get_logger, setup_logging
from insurance_verification.config.request_context import REQUEST_ID_HEADER, correlation_id_middleware
from insurance_verification.config.settings import Settings, get_settings
from insurance_verification.exceptions import (
    AccessDenied,
    ConcurrentUpdateError,
    RecordNotFound,
    SubmissionFailed,
    ValidationError,
)
from insurance_verification.storage.database import close_db, init_db

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Explicit settings (defaults to environment settings)
        container: Prebuilt service container; when given the lifespan
                   neither opens the database nor builds services
    """
    settings = settings or get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Insurance Verification Service", env=settings.app_env)
        owns_container = container is None
        if owns_container:
            session_factory = await init_db(settings.database_url, echo=settings.database_echo)
            app.state.container = build_container(settings, session_factory)
        else:
            app.state.container = container
        logger.info(
            "Services initialized",
            classifier=settings.classifier_provider,
            payer_channel=settings.payer_channel,
        )

        yield

        logger.info("Shutting down Insurance Verification Service")
        if owns_container:
            try:
                await app.state.container.close()
            except Exception as e:
                logger.warning("Failed to close service clients", error=str(e))
            await close_db()

    app = FastAPI(
        title="Insurance Verification Service",
        description="Eligibility verification, prior authorization and audit logging",
        version=__version__,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", REQUEST_ID_HEADER, "X-User-Id", "X-User-Role"],
    )

    app.middleware("http")(correlation_id_middleware)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": str(exc), "errors": exc.errors})

    @app.exception_handler(AccessDenied)
    async def access_denied_handler(request: Request, exc: AccessDenied):
        return JSONResponse(status_code=403, content={"error": str(exc)})

    @app.exception_handler(RecordNotFound)
    async def not_found_handler(request: Request, exc: RecordNotFound):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(SubmissionFailed)
    async def submission_failed_handler(request: Request, exc: SubmissionFailed):
        return JSONResponse(
            status_code=502,
            content={"error": str(exc), "detail": "The request is still pending and can be resubmitted."},
        )

    @app.exception_handler(ConcurrentUpdateError)
    async def conflict_handler(request: Request, exc: ConcurrentUpdateError):
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        error_id = str(uuid.uuid4())[:8]
        logger.error("Unhandled exception", error_id=error_id, error=str(exc), path=request.url.path, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "error_id": error_id})

    app.include_router(verifications.router, prefix="/api/v1")
    app.include_router(prior_auth.router, prefix="/api/v1")
    app.include_router(audit.router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "platform": "insurance-verification",
            "components": {"database": True},
        }

    @app.get("/health/integrations")
    async def health_check_integrations(request: Request):
        """Which classifier, payer and notification channels are configured."""
        services: ServiceContainer = request.app.state.container
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "classifier": settings.classifier_provider,
            "payer_channel": services.payer.channel_name,
            "notification_channels": [c.channel_type.value for c in services.channels],
        }

    @app.get("/")
    async def root():
        return {
            "name": "Insurance Verification Service",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("insurance_verification.main:create_app", factory=True, host="0.0.0.0", port=8002, reload=True)
