"""Concord API — FastAPI application factory and entry point.

Invariants:
    - Components and rules are registered explicitly in create_app(), then
      both registries are frozen (SyncEngine.validate)
    - Requesting is always registered; a caller-supplied Requesting is reused
    - Global error handlers map ConcordError → structured JSON responses
    - Database initialized on startup only when persist_invocations is set

Design Decisions:
    - Engine built eagerly in create_app(), not in the lifespan: rule
      definition errors fail at import/construction time, and test clients
      that skip the lifespan still get a working engine
    - Routes under base_url registered LAST: its catch-all path must not
      shadow /api/v1/health or /api/v1/cascades
"""

import logging
from contextlib import asynccontextmanager
from typing import Iterable, Mapping

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import concord.infrastructure.database as database
from concord.api.error_handlers import register_error_handlers
from concord.api.routes import cascades, health, requesting
from concord.concepts.requesting import RequestingConcept
from concord.config import Settings, get_settings
from concord.core.domain_types import REQUESTING
from concord.core.rules import Rule
from concord.infrastructure.observability import setup_logging
from concord.services.concept_registry import ConceptRegistry
from concord.services.invocation_recorder import SqlInvocationRecorder
from concord.services.passthrough import PassthroughPolicy
from concord.services.request_gateway import RequestGateway
from concord.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


def create_app(
    concepts: Mapping[str, object] | None = None,
    rules: Iterable[Rule] = (),
    settings: Settings | None = None,
) -> FastAPI:
    """Build the engine for `concepts` + `rules` and the FastAPI app serving it."""
    settings = settings or get_settings()

    registry = ConceptRegistry()
    for name, concept in (concepts or {}).items():
        registry.register(name, concept)
    if registry.has_concept(REQUESTING):
        requesting_concept = registry.concept(REQUESTING)
    else:
        requesting_concept = RequestingConcept()
        registry.register(REQUESTING, requesting_concept)

    engine = SyncEngine(
        registry, rules,
        max_cascade_depth=settings.max_cascade_depth,
        enrichment_timeout=settings.enrichment_timeout_seconds,
        retention=settings.log_retention_cascades,
        repository=_build_recorder(settings),
    )
    engine.validate()

    policy = _build_policy(settings)
    policy.audit(
        op.ref for op in registry.operations() if op.ref.component != REQUESTING
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle."""
        setup_logging(settings.log_level, settings.log_format)
        if settings.persist_invocations:
            database.init_db(
                settings.database_url,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
            )
        logger.info(
            "Concord API started (%d components, %d rules)",
            len(registry.names()), len(engine.rules),
        )
        yield
        await database.close_db()
        logger.info("Concord API shutting down")

    app = FastAPI(title="Concord API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.requesting = requesting_concept
    app.state.gateway = RequestGateway(
        engine, requesting_concept, policy, settings.request_timeout_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(cascades.router)
    app.include_router(requesting.build_router(settings.base_url))
    return app


def _build_policy(settings: Settings) -> PassthroughPolicy:
    if settings.passthrough_config_path:
        return PassthroughPolicy.from_file(
            settings.passthrough_config_path, default=settings.passthrough_default,
        )
    return PassthroughPolicy(default=settings.passthrough_default)


def _build_recorder(settings: Settings) -> SqlInvocationRecorder | None:
    if not settings.persist_invocations:
        return None

    def session():
        if database.db_manager is None:
            raise RuntimeError("Database not initialized")
        return database.db_manager.session()

    return SqlInvocationRecorder(
        session, max_tracked_cascades=settings.log_retention_cascades,
    )


app = create_app()
