"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures logging, lifespan events and the infrastructure wiring.
"""

import logging
from collections.abc import AsyncGenerator
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.mail import ConsoleMailTransport, JinjaTemplateRenderer, SmtpMailTransport
from src.adapters.mail.templates import DEFAULT_LOCALES_DIR, DEFAULT_TEMPLATES_DIR
from src.adapters.repository import (
    InMemoryAccountRepository,
    PostgresAccountRepository,
    run_migrations,
)
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings
from src.domain.notifications import NotificationService
from src.domain.ports import MailTransport

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Account lifecycle API v1 - Registration, activation, password reset and profile",
    },
]


def build_transport(settings: Settings) -> MailTransport:
    """Select the mail transport configured by mail_transport."""
    if settings.mail_transport == "smtp":
        return SmtpMailTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.mail_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            starttls=settings.smtp_starttls,
        )
    return ConsoleMailTransport()


def build_notifier(settings: Settings, executor: Executor | None = None) -> NotificationService:
    """Wire the Jinja2 renderer and transport into the notification gateway."""
    renderer = JinjaTemplateRenderer(
        templates_dir=settings.mail_templates_dir or DEFAULT_TEMPLATES_DIR,
        locales_dir=settings.mail_locales_dir or DEFAULT_LOCALES_DIR,
        default_locale=settings.default_lang_key,
    )
    return NotificationService(
        renderer=renderer,
        transport=build_transport(settings),
        base_url=settings.base_url,
        default_lang_key=settings.default_lang_key,
        supported_lang_keys=tuple(settings.supported_lang_keys),
        executor=executor,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool and runs migrations (postgres backend)
    - Starts the notification worker pool
    - Drains pending notifications and closes the pool on shutdown
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)
        app.state.repository = PostgresAccountRepository(pool)
    else:
        logger.warning("Using in-memory account storage; accounts are lost on restart")
        app.state.repository = InMemoryAccountRepository()

    app.state.pool = pool

    # Emails are sent after the state change is committed, off the request thread
    executor = ThreadPoolExecutor(
        max_workers=settings.notification_workers, thread_name_prefix="notifications"
    )
    app.state.notifier = build_notifier(settings, executor)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    executor.shutdown(wait=True)
    logger.info("Notification workers stopped")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="accounts",
    description="Account lifecycle API - Registration, activation, password reset and profile management",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = getattr(request.app.state, "pool", None)
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
