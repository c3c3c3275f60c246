"""
mdnotes Backend - Process Entry Point
=======================================

Usage:
    python -m mdnotes        (or the `mdnotes` console script)

Loads settings from the environment, then serves the app with uvicorn.
Exits with status 1 when configuration, the database connection or a
migration fails during startup.
"""

import logging
import sys

import uvicorn

from mdnotes.config import load_settings
from mdnotes.exceptions import StartupError
from mdnotes.main import create_app, setup_logging

logger = logging.getLogger("mdnotes")


def main() -> int:
    setup_logging()
    try:
        settings = load_settings()
    except StartupError as e:
        logger.critical("%s", e.message)
        return 1

    config = uvicorn.Config(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        lifespan="on",
    )
    server = uvicorn.Server(config)
    server.run()

    # uvicorn returns normally when the lifespan startup fails
    if not server.started:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
