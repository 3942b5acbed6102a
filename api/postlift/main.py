import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from postlift.agent.optimization import OptimizationAgent
from postlift.bandit.contextual import ContextualBandit
from postlift.bandit.persistence import BanditStore, InMemoryBanditStore, RedisBanditStore
from postlift.core.cache import BoundedCache
from postlift.core.config import Settings, settings
from postlift.core.database import build_engine, build_sessionmaker
from postlift.core.exceptions import (
    AgentInactiveError,
    EngineError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from postlift.core.logging import configure_logging
from postlift.core.metrics import LoggingMetrics
from postlift.routers import experiments, health, optimization
from postlift.services.experiments import ExperimentManager
from postlift.stores.sql import SqlExperimentStore

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[EngineError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
    AgentInactiveError: status.HTTP_409_CONFLICT,
}


def build_agent(config: Settings) -> OptimizationAgent:
    """Bandit-backed agent; Redis persistence when ``REDIS_URL`` is set."""
    store: BanditStore = (
        RedisBanditStore.from_url(config.REDIS_URL) if config.REDIS_URL else InMemoryBanditStore()
    )
    metrics = LoggingMetrics()
    bandit = ContextualBandit(
        dimension=config.BANDIT_DIMENSION,
        exploration=config.BANDIT_EXPLORATION,
        regularization=config.BANDIT_REGULARIZATION,
        store=store,
        selection_cache=BoundedCache(
            maxsize=config.SELECTION_CACHE_SIZE, ttl=config.SELECTION_CACHE_TTL
        ),
        cache_bypass_probability=config.SELECTION_CACHE_BYPASS,
        metrics=metrics,
    )
    return OptimizationAgent(
        bandit,
        pending=BoundedCache(maxsize=config.PENDING_REWARD_CACHE_SIZE),
        metrics=metrics,
    )


def create_app(
    manager: ExperimentManager | None = None,
    agent: OptimizationAgent | None = None,
    config: Settings | None = None,
) -> FastAPI:
    """Application factory.

    Components not supplied are built from ``config`` at startup: a SQL-backed
    experiment manager on ``DATABASE_URL`` and a bandit agent persisted to
    ``REDIS_URL`` (in memory when unset).
    """
    config = config or settings
    configure_logging(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        engine = None
        app.state.experiment_manager = manager
        if manager is None:
            engine = build_engine(config.DATABASE_URL)
            app.state.experiment_manager = ExperimentManager(
                SqlExperimentStore(build_sessionmaker(engine)),
                config=config,
                metrics=LoggingMetrics(),
            )
        app.state.optimization_agent = agent or build_agent(config)
        await app.state.optimization_agent.start()
        try:
            yield
        finally:
            await app.state.optimization_agent.stop()
            await app.state.optimization_agent.bandit.shutdown()
            if engine is not None:
                await engine.dispose()

    app = FastAPI(
        title=config.PROJECT_NAME,
        openapi_url=f"{config.API_V1_PREFIX}/openapi.json",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        code = next(
            (c for cls, c in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    # Routers
    app.include_router(health.router)
    app.include_router(experiments.router, prefix=config.API_V1_PREFIX)
    app.include_router(optimization.router, prefix=config.API_V1_PREFIX)
    return app


app = create_app()
