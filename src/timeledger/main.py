"""Main FastAPI application for timeledger."""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import domains, stats, sync, tags, timeslots
from .api.middleware import register_exception_handlers
from .config import config_manager, get_config
from .context import AppContext, build_context
from .store.garbage_collector import run_startup_gc
from .utils.logging_config import get_logger, initialize_logging

logger = get_logger("main")


def create_app(context: Optional[AppContext] = None, start_scheduler: bool = True) -> FastAPI:
    """
    Create the API application around one context.

    Args:
        context: Wired components; built from the global configuration if omitted
        start_scheduler: Start periodic sync in the lifespan

    Returns:
        FastAPI application whose lifespan sweeps tombstones before any sync
    """
    context = context or build_context()
    config = context.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        report = run_startup_gc(context.gc)
        if report is not None:
            logger.info(f"Startup GC erased {report.total_erased} tombstone(s)")

        if start_scheduler:
            context.scheduler.start()
        try:
            yield
        finally:
            await context.scheduler.stop()
            logger.info("timeledger API stopped")

    app = FastAPI(
        title="timeledger",
        description=config.app.description,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.context = context

    register_exception_handlers(app)

    if config.app.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.app.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
        )

    app.include_router(domains.router)
    app.include_router(tags.router)
    app.include_router(timeslots.router)
    app.include_router(stats.router)
    app.include_router(sync.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "timeledger",
            "version": __version__,
            "sync_state": context.sync_engine.state.value,
            "cache": context.cache.get_stats(),
        }

    return app


def main() -> None:
    """Run the local API server."""
    config = get_config()
    initialize_logging()

    for issue in config_manager.validate_config():
        logger.warning(f"Configuration issue: {issue}")

    logger.info(f"Starting timeledger {__version__} on {config.server.host}:{config.server.port}")
    uvicorn.run(
        create_app(),
        host=config.server.host,
        port=config.server.port,
        log_level=config.app.log_level.lower(),
    )


if __name__ == "__main__":
    main()
