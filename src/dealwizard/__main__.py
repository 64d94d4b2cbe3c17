"""
Main entry point for the Deal Wizard API.

Run with:  python -m dealwizard
"""

import logging

import uvicorn

from dealwizard.config import settings


def setup_logging() -> None:
    """Configure structured logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main() -> None:
    """Initialize storage and serve the API."""
    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting Deal Wizard API on %s:%d", settings.api_host, settings.api_port)
    logger.info("Draft storage: %s", settings.database_url)

    # Import here so the store is created after logging is configured
    from dealwizard.api import create_app

    uvicorn.run(
        create_app(),
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # keep the logging setup above
    )


if __name__ == "__main__":
    main()
