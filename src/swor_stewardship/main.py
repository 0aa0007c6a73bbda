"""SWOR stewardship service entry point.

Initializes the FastAPI application with:
- Structured logging (structlog)
- Primary database for reviewable items, audit log, assignments and reset history
- Notification dispatcher posting to the notification webhook
- Account directory backed by the identity provider
- In-memory bulk job registry
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from swor_stewardship.adapters.directory import HttpAccountDirectory
from swor_stewardship.adapters.notifications import WebhookNotificationSender
from swor_stewardship.api.router import router
from swor_stewardship.bulk.jobs import BulkJobRegistry
from swor_stewardship.core.services import NotificationDispatcher
from swor_stewardship.database import close_database, init_database
from swor_stewardship.errors import StewardshipError
from swor_stewardship.observability import configure_logging, get_logger
from swor_stewardship.settings import Settings

logger = get_logger(__name__)

SERVICE_VERSION = "0.1.0"


def build_state(app: FastAPI, settings: Settings) -> None:
    """Attach shared clients to app state for dependency injection.

    The session factory is not set here; the lifespan sets it once the
    engine exists.
    """
    sender = WebhookNotificationSender(
        webhook_url=settings.notification_webhook_url,
        timeout_ms=settings.notification_timeout_ms,
    )
    app.state.settings = settings
    app.state.dispatcher = NotificationDispatcher(sender)
    app.state.job_registry = BulkJobRegistry()
    app.state.directory = (
        HttpAccountDirectory(settings.identity_provider_url) if settings.identity_provider_url else None
    )
    if not sender.enabled:
        logger.warning("Notification webhook not configured — notifications will be dropped")


async def handle_stewardship_error(request: Request, exc: StewardshipError) -> JSONResponse:
    """Map domain errors to JSON responses using their code and status."""
    logger.info(
        "Request failed with domain error",
        path=request.url.path,
        error=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Service settings; read from the environment when omitted.

    Returns:
        The configured application, routes mounted under /api/v1.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application startup and shutdown lifecycle.

        Configures logging, initializes the database and shared clients on
        startup. Waits for running bulk jobs and disposes the engine on
        shutdown.

        Args:
            app: The FastAPI application instance.

        Yields:
            None
        """
        configure_logging(settings.log_level, json_logs=settings.log_json)

        # Startup — primary database
        logger.info("Initializing primary database", service=settings.service_name)
        app.state.session_factory = init_database(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            echo=settings.db_echo,
        )

        # Startup — notification dispatcher, account directory, bulk jobs
        build_state(app, settings)

        logger.info(
            "Stewardship service startup complete",
            bulk_batch_size=settings.bulk_batch_size,
            audit_export_row_cap=settings.audit_export_row_cap,
        )

        yield

        # Shutdown
        logger.info("Shutting down stewardship service")
        await app.state.job_registry.shutdown()
        await close_database()
        logger.info("Stewardship service shutdown complete")

    app = FastAPI(title=settings.service_name, version=SERVICE_VERSION, lifespan=lifespan)
    app.add_exception_handler(StewardshipError, handle_stewardship_error)  # type: ignore[arg-type]

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.service_name, "version": SERVICE_VERSION}

    app.include_router(router, prefix="/api/v1")
    return app


app: FastAPI = create_app()
