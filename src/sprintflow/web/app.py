"""ASGI application for the Sprintflow HTTP API.

``create_app`` wires the service container, envelope error handlers,
request logging and CORS onto a FastAPI instance. Serve it with uvicorn::

    uvicorn.run(create_app(load_config()), host="0.0.0.0", port=8000)

Tests pass a prebuilt ``Services`` so the lifespan reuses their database
and event bus instead of building its own.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sprintflow import __version__
from sprintflow.config import SprintflowConfig
from sprintflow.logging import get_logger
from sprintflow.services import Services
from sprintflow.web.errors import register_error_handlers
from sprintflow.web.middleware import RequestLoggingMiddleware
from sprintflow.web.routes.health import create_health_router
from sprintflow.web.routes.projects import create_projects_router
from sprintflow.web.routes.sprints import create_sprints_router
from sprintflow.web.routes.workflow import create_workflow_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

ROUTER_FACTORIES = (
    create_health_router,
    create_projects_router,
    create_sprints_router,
    create_workflow_router,
)


def _add_middleware(app: FastAPI, config: SprintflowConfig) -> None:
    # The last middleware added is the outermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the service container on startup and close it on shutdown.

    A container already placed on ``app.state`` (for example by tests) is
    used as is and closed the same way.
    """
    config: SprintflowConfig = app.state.config

    logger.info("app_startup_begin", host=config.web.host, port=config.web.port)

    if getattr(app.state, "services", None) is None:
        app.state.services = Services.create(config)
        logger.info(
            "database_pool_initialized",
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
        )

    yield

    logger.info("app_shutdown_begin")
    services: Services = app.state.services
    await services.close()
    app.state.services = None


def create_app(
    config: SprintflowConfig | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        config: Settings for CORS and the lifespan; defaults are used when None.
        services: Service container to reuse instead of creating one at startup.
    """
    if config is None:
        config = SprintflowConfig()

    app = FastAPI(
        title="Sprintflow",
        version=__version__,
        description="Sprint lifecycle state machine for AI-assisted delivery",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.services = services

    _add_middleware(app, config)
    register_error_handlers(app)
    for factory in ROUTER_FACTORIES:
        app.include_router(factory())

    logger.info(
        "app_created",
        cors_origins=config.web.cors_origins,
        version=__version__,
    )

    return app
