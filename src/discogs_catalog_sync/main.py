"""Process entry point: config bootstrap, app factory and uvicorn runner."""

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from . import __version__
from .api import collection_router, discogs_router, health_router, register_exception_handlers, releases_router
from .config import Config, get_config, load_config, set_config
from .database import close_db, get_db
from .sync import SyncEngine, SyncScheduler

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_CONFIG_PATH = "/config/config.yaml"
NOISY_LOGGERS = ("aiosqlite", "httpx", "httpcore")


def setup_logging(level: str = "INFO") -> None:
    """Log to stdout; third-party libraries only at WARNING and above."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def find_config_path() -> Path:
    """``$CONFIG_PATH`` (default /config/config.yaml), else ./config.yaml for local runs."""
    configured = Path(os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH))
    if configured.exists():
        return configured
    local = Path("config.yaml")
    if local.exists():
        return local
    raise FileNotFoundError(
        f"Configuration file not found: {configured}. Create config.yaml or set CONFIG_PATH."
    )


def init_config(config: Config | None = None) -> Config:
    """Install ``config`` (or the one found on disk) and configure logging from it."""
    if config is not None:
        set_config(config)
        source = "caller"
    else:
        path = find_config_path()
        config = load_config(path)
        source = str(path)

    setup_logging(config.logging.level)
    logger.info("Loaded configuration from %s", source)
    if not config.discogs.has_api_token:
        logger.warning("Discogs API token not configured; syncs will fail until it is set")
    if config.default_user_id is None:
        logger.warning("No Discogs username or sync.default_user_id; scheduled syncs will fail")
    return config


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database, start the scheduler; undo both on shutdown."""
    config = get_config()
    logger.info("Starting discogs-catalog-sync %s", __version__)

    db = await get_db()
    logger.info("Database ready at %s", db.db_path)

    engine = SyncEngine(config)
    scheduler = SyncScheduler(engine, config)
    app.state.engine = engine
    app.state.scheduler = scheduler

    logger.info(
        "Sync for user %s: startup=%s, daily=%s",
        config.default_user_id,
        config.sync.sync_on_startup,
        config.sync.daily_run_time if config.sync.cron_sync_enabled else "off",
    )
    await scheduler.start()

    try:
        yield
    finally:
        logger.info("Shutting down discogs-catalog-sync")
        await scheduler.stop()
        await engine.close()
        await close_db()


def create_app(config: Config | None = None) -> FastAPI:
    """Build the FastAPI application."""
    init_config(config)

    app = FastAPI(
        title="discogs-catalog-sync",
        description="Local catalog of a Discogs collection, wantlist and suggestions",
        version=__version__,
        lifespan=lifespan,
    )
    register_exception_handlers(app)

    for router in (health_router, collection_router, releases_router, discogs_router):
        app.include_router(router)

    return app


def main() -> None:
    """Console script entry point."""
    try:
        app = create_app()
    except FileNotFoundError as e:
        sys.exit(f"Error: {e}")

    config = get_config()
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
