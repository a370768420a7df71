"""Application entry point for the outreach agent.

Runs the FastAPI server for the interactive endpoints and, when
``POLL_INTERVAL_SECONDS`` is positive, a background loop that runs the
reply poller on a fixed interval in the same process.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting through the structlog-sentry processor
- **Prometheus** HTTP and business metrics on ``/metrics``
- **SQLite** stores, credential service, and reply poller shared by all requests
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from outreach.auth.credentials import GmailCredentialService, gmail_client_factory
from outreach.auth.identity import SessionTokenSigner
from outreach.config import Settings, get_settings, validate_credentials
from outreach.domain.errors import ConfigurationError, JobAlreadyRunning
from outreach.health import register_health_routes
from outreach.llm.client import get_anthropic_client
from outreach.observability.metrics import setup_metrics
from outreach.observability.middleware import RequestIdMiddleware
from outreach.observability.sentry import get_sentry_processor, init_sentry
from outreach.replies.poller import REPLY_POLLER_JOB, ReplyPoller
from outreach.routes import register_error_handlers, router
from outreach.state.lock import JobLock
from outreach.state.schema import connect
from outreach.state.store import CredentialStore, EmailStore, ReplyStore

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR events to Sentry if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())
    shared_processors.extend(
        [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]
    )

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="outreach-agent")


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the SQLite database, creates the stores, the Gmail credential
    service, the reply poller with its run-lock, the session token signer
    (if ``SESSION_SECRET`` is set), and the Anthropic client (if an API key
    is set).

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    db_path = settings.db_path
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    services["db_conn"] = conn

    credential_store = CredentialStore(conn)
    email_store = EmailStore(conn)
    reply_store = ReplyStore(conn)
    services["credential_store"] = credential_store
    services["email_store"] = email_store
    services["reply_store"] = reply_store

    credential_service = GmailCredentialService.from_settings(credential_store, settings)
    client_factory = gmail_client_factory(timeout=settings.http_timeout_seconds)
    services["credential_service"] = credential_service
    services["gmail_client_factory"] = client_factory

    services["reply_poller"] = ReplyPoller(
        email_store,
        reply_store,
        credential_service,
        client_factory,
        job_lock=JobLock(conn, REPLY_POLLER_JOB, settings.poll_lock_ttl_seconds),
    )

    session_secret = settings.session_secret.get_secret_value()
    if session_secret:
        services["identity"] = SessionTokenSigner(session_secret)
    else:
        services["identity"] = None
        logger.warning("SESSION_SECRET not set, authenticated endpoints will reject requests")

    anthropic_key = settings.anthropic_api_key.get_secret_value()
    if anthropic_key:
        services["anthropic_client"] = get_anthropic_client(anthropic_key)
        logger.info("Anthropic client initialized")
    else:
        services["anthropic_client"] = None
        logger.warning("ANTHROPIC_API_KEY not set, drafting disabled")

    return services


async def run_reply_poller_periodically(services: dict[str, Any], interval_seconds: int) -> None:
    """Run the reply poller every *interval_seconds* until cancelled.

    A run that finds the lock held, or fails to start, is logged and the
    loop waits for the next interval.

    Args:
        services: The initialized services dict.
        interval_seconds: Seconds between the end of one run and the next.
    """
    poller: ReplyPoller = services["reply_poller"]
    while True:
        try:
            result = await asyncio.to_thread(poller.run)
            logger.info("Scheduled reply poll finished", replies=result.replies_recorded)
        except JobAlreadyRunning:
            logger.info("Scheduled reply poll skipped, previous run still active")
        except ConfigurationError as exc:
            logger.error("Scheduled reply poll cannot run", error=str(exc))
        except Exception:
            logger.exception("Scheduled reply poll failed")
        await asyncio.sleep(interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On startup: starts the periodic reply poller when enabled.
    On shutdown: cancels the poller loop and closes the database connection.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    settings: Settings = app.state.settings

    poll_task: asyncio.Task[None] | None = None
    if settings.poll_interval_seconds > 0:
        poll_task = asyncio.create_task(
            run_reply_poller_periodically(services, settings.poll_interval_seconds)
        )
        logger.info("Reply poller scheduled", interval_seconds=settings.poll_interval_seconds)

    logger.info("FastAPI application starting")
    yield

    if poll_task is not None:
        poll_task.cancel()
        try:
            await poll_task
        except asyncio.CancelledError:
            logger.info("Reply poller loop stopped")

    conn = services.get("db_conn")
    if conn is not None:
        conn.close()
        logger.info("Database connection closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, routes, metrics, and middleware.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Outreach Agent", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings", get_settings())
    fastapi_app.state.identity = services.get("identity")
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(router)
    register_error_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point: configure, wire services, and serve.

    1. Configure logging and Sentry
    2. Validate credentials
    3. Initialize services
    4. Create FastAPI app and run uvicorn (the poller loop runs in the lifespan)
    """
    settings = get_settings()
    sentry_enabled = init_sentry(
        settings.sentry_dsn,
        environment="production" if settings.production else "development",
    )
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("Application starting")

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
