"""
Process entry point: resolve configuration, then serve the app with uvicorn.

    board-relay            # reads env / .env, plus Secret Manager when enabled
"""

from __future__ import annotations

import logging
import sys

import uvicorn

from relay.app import create_app
from relay.errors import SecretsUnavailableError
from relay.secret_manager import load_settings

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    try:
        settings = load_settings()
    except SecretsUnavailableError:
        logger.exception("Failed to initialize application")
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level.upper())
    app = create_app(settings)
    logger.info("Server is running on port: %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
