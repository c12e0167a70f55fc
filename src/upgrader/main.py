"""FastAPI application serving read-only upgrade status."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import uvicorn

from upgrader.api.routes import router
from upgrader.models.config import UpgraderConfig, load_config
from upgrader.utils.logging import setup_logger


def create_app(config: Optional[UpgraderConfig] = None) -> FastAPI:
    """Build the status app.

    Args:
        config: Configuration to serve; loaded from the config file on
            startup if None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load configuration and logging on startup."""
        if getattr(app.state, "config", None) is None:
            app.state.config = load_config()
        cfg = app.state.config
        logger = setup_logger("upgrader", str(cfg.log_file), level=logging.INFO)
        logger.info(f"Upgrade status API starting, state file {cfg.state_file}")

        yield

        logger.info("Upgrade status API shutting down")

    app = FastAPI(
        title="Release Upgrader Status",
        description="Read-only view of a multi-reboot OS release upgrade",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.include_router(router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "upgrader-status", "version": "1.0.0"}

    return app


app = create_app()


def main():
    """Main entry point for running the status server."""
    config = load_config()
    uvicorn.run(
        create_app(config),
        host=config.status_host,
        port=config.status_port,
        log_level="info",
        access_log=True,
    )


if __name__ == "__main__":
    main()
