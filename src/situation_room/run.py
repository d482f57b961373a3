"""
Situation Room Runner

Console entry point: configures logging, optionally brings the schema up
to date, then serves the API with uvicorn.
"""
import asyncio
import logging

import uvicorn

from .config import Config
from .migrations.migrate import apply_migrations

logger = logging.getLogger("situation")


def configure_logging(level: str = None):
    logging.basicConfig(
        level=level or Config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def run():
    """Run the situation room service"""
    configure_logging()

    if Config.MIGRATE_ON_START:
        applied = asyncio.run(apply_migrations())
        if applied:
            logger.info(f"Applied migrations before start: {', '.join(applied)}")

    logger.info(f"Starting Situation Room service on {Config.API_HOST}:{Config.API_PORT}")
    uvicorn.run(
        "situation_room.app:app",
        host=Config.API_HOST,
        port=Config.API_PORT,
        reload=Config.DEBUG,
        log_level=Config.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
