"""Thorbis Ops API — FastAPI application factory."""


import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from thorbis.core.config import settings
from thorbis.core.exceptions import register_exception_handlers
from thorbis.core.security import ActorResolver, HeaderActorResolver
from thorbis.db.base import create_tables, engine as db_engine
from thorbis.lifecycle.definitions import DEFAULT_REGISTRY, LifecycleRegistry
from thorbis.lifecycle.engine import LifecycleEngine
from thorbis.lifecycle.notifications import NotificationDispatcher, log_transition
from thorbis.lifecycle.rate_limit import FixedWindowRateLimiter
from thorbis.middleware.request_context import RequestContextMiddleware
from thorbis.schemas.common import HealthResponse
from thorbis.services.audit import AuditTrailRecorder
from thorbis.services.cascade import AppointmentCompletionCascade
from thorbis.services.references import ReferenceValidator, RepositoryReferenceValidator

# v1 routers
from thorbis.routers.v1.entities import router as entities_v1_router
from thorbis.routers.v1.lifecycles import router as lifecycles_v1_router

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Set up structured logging for the application."""
    level = logging.DEBUG if settings.is_development else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    if settings.auto_create_tables:
        await create_tables()
    yield
    app.state.rate_limiter.reset()
    await db_engine.dispose()


def create_app(
    registry: LifecycleRegistry = DEFAULT_REGISTRY,
    actor_resolver: ActorResolver | None = None,
    notifier: NotificationDispatcher | None = None,
    rate_limiter: FixedWindowRateLimiter | None = None,
    reference_validator: ReferenceValidator | None = None,
) -> FastAPI:
    _configure_logging()

    # A broken transition table must stop the process, not fail a request.
    registry.check()
    logger.info("Loaded %d lifecycles: %s", len(registry), ", ".join(lc.entity_type for lc in registry))

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=_lifespan,
    )

    # --- Collaborators (injected, never module-level state) ---
    lifecycle_engine = LifecycleEngine(registry)
    app.state.lifecycle_engine = lifecycle_engine
    app.state.actor_resolver = actor_resolver or HeaderActorResolver()
    if notifier is None:
        notifier = NotificationDispatcher()
        notifier.subscribe(log_transition)
        notifier.subscribe(AuditTrailRecorder())
        notifier.subscribe(AppointmentCompletionCascade(lifecycle_engine, notifier))
    app.state.notifier = notifier
    app.state.rate_limiter = rate_limiter or FixedWindowRateLimiter(
        settings.rate_limit_requests, settings.rate_limit_window_seconds
    )
    app.state.reference_validator = reference_validator or RepositoryReferenceValidator()

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # --- Request ids + write logging ---
    app.add_middleware(RequestContextMiddleware, actor_id_header=settings.actor_id_header)

    # --- Global exception handlers ---
    register_exception_handlers(app)

    # --- v1 API routes (/api/v1/*) ---
    app.include_router(lifecycles_v1_router, prefix="/api/v1")
    app.include_router(entities_v1_router, prefix="/api/v1")

    # --- Health check ---
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        return HealthResponse(
            app=settings.app_name,
            env=settings.app_env,
            lifecycles=[lc.entity_type for lc in registry],
        )

    return app


app = create_app()
