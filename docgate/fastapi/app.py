"""Application factory for docgate."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from docgate import __version__
from docgate.auth.rate_limit import RateLimitConfig, RateLimiter, RateLimitMiddleware
from docgate.auth.service import AuthorizationManager, create_authorization_manager
from docgate.core.client import StorageClientManager
from docgate.core.clock import Clock, system_clock
from docgate.core.exceptions import ConfigurationError
from docgate.core.settings import DocGateSettings
from docgate.fastapi.error_handlers import register_error_handlers
from docgate.fastapi.routes import router
from docgate.storage.backends import S3StorageBackend, StorageBackend
from docgate.storage.uploads import UploadPipeline

logger = logging.getLogger(__name__)

SESSION_PURGE_INTERVAL = 60.0


def build_pipeline(settings: DocGateSettings, backend: StorageBackend) -> UploadPipeline:
    return UploadPipeline(
        backend,
        allowed_content_type=settings.allowed_content_type,
        max_size=settings.max_upload_size,
    )


async def _purge_sessions(manager, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        manager.purge_expired()


def create_app(
    settings: DocGateSettings | None = None,
    storage_backend: StorageBackend | None = None,
    authorization_manager: AuthorizationManager | None = None,
    rate_limiter: RateLimiter | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create the docgate FastAPI application.

    Configuration is validated here, so a missing secret or missing
    credentials stop the process before it can serve anything. Backend
    credentials are checked during startup for the same reason.

    Args:
        settings: Settings (read from the environment if not given)
        storage_backend: Backend to use instead of the configured S3 bucket;
            when given, no backend connectivity check is made
        authorization_manager: Capability manager (built from settings if None)
        rate_limiter: Admission controller (built from settings if None)
        clock: Time source shared by the default limiter and manager

    Returns:
        The configured FastAPI app

    Raises:
        ConfigurationError: If required settings are missing
    """
    settings = settings or DocGateSettings()
    settings.require_complete()
    clock = clock or system_clock

    manager = authorization_manager or create_authorization_manager(settings, clock)
    limiter = rate_limiter or RateLimiter(
        RateLimitConfig(
            requests=settings.rate_limit_max,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        clock=clock,
        trusted_proxies=settings.trusted_proxies,
        trust_x_forwarded_for=settings.trust_x_forwarded_for,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with contextlib.AsyncExitStack() as stack:
            if storage_backend is not None:
                backend = storage_backend
            else:
                client_manager = StorageClientManager(settings)
                try:
                    await run_in_threadpool(client_manager.verify_backend)
                except ConfigurationError as e:
                    logger.critical(f"Refusing to start: {e.message}")
                    raise
                s3_client = await stack.enter_async_context(
                    client_manager.get_async_client()
                )
                backend = S3StorageBackend(
                    s3_client,
                    settings.aws_bucket_name,
                    prefix=settings.upload_prefix,
                    public_url=settings.storage_public_url,
                    endpoint_url=client_manager.endpoint_url,
                    region=settings.aws_default_region,
                )
            app.state.upload_pipeline = build_pipeline(settings, backend)

            purge_task = None
            if hasattr(manager, "purge_expired"):
                purge_task = asyncio.create_task(
                    _purge_sessions(manager, SESSION_PURGE_INTERVAL)
                )

            logger.info(f"docgate {__version__} ready (session_mode={settings.session_mode})")
            try:
                yield
            finally:
                if purge_task is not None:
                    purge_task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await purge_task

    app = FastAPI(
        title="docgate",
        description="Authorizing gateway for PDF uploads to object storage",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.authorization_manager = manager
    app.state.rate_limiter = limiter

    register_error_handlers(app)
    app.include_router(router)

    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    # Outermost, so CORS preflights never consume admissions
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=settings.session_mode == "cookie",
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    return app
