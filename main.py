#!/usr/bin/env python3
"""Main entry point for ShareGuard."""

import uvicorn

from shareguard.common.config import get_config
from shareguard.common.logging import configure_logging, get_logger

logger = get_logger(__name__)


def main():
    """Main entry point."""
    config = get_config()
    configure_logging(config.log_level.value)
    logger.info(f"ShareGuard starting in {config.environment.value} mode")
    logger.info(f"Store backend: {config.store_backend.value}")
    uvicorn.run(
        "shareguard.api.gateway:app",
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
