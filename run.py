#!/usr/bin/env python3
"""
Run script for the JWT Authentication API.
Configuration is read from the environment (and .env); the server refuses to
start without JWT_SECRET.
"""
import logging
import sys

import uvicorn

from authapi.config import Settings
from authapi.errors import ConfigurationError

logger = logging.getLogger("authapi.run")


def main() -> int:
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.critical("Configuration error, not starting: %s", e)
        return 1

    print(f"Starting JWT Authentication API on http://{settings.host}:{settings.port}")
    print(f"API documentation at http://{settings.host}:{settings.port}/docs")
    print("Rate limiting enabled: Login (5/15min), Register (3/hour), API (100/15min), Protected (10/hour)")

    uvicorn.run(
        "authapi.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
