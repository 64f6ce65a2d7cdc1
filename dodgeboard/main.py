"""
Dodgeboard - Application Entry Point
====================================

- Config validation
- FastAPI app construction (ServiceContainer runs inside its lifespan)
- uvicorn server with graceful shutdown
"""

import sys

import uvicorn

from dodgeboard.api.app import create_app
from dodgeboard.core.config.config import Config
from dodgeboard.core.logging.logger import get_logger, shutdown_logging

logger = get_logger(__name__)


def run() -> None:
    logger.info("========== DODGEBOARD INITIALIZATION START ==========")

    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        sys.exit(1)

    app = create_app()
    logger.info(f"Rhythm Dodger score server listening on http://{Config.HOST}:{Config.PORT}")

    try:
        # uvicorn handles SIGINT/SIGTERM and runs the lifespan shutdown
        uvicorn.run(
            app,
            host=Config.HOST,
            port=Config.PORT,
            log_level=Config.LOG_LEVEL.lower(),
            log_config=None,
        )
    except KeyboardInterrupt:
        logger.info("Server manually stopped via keyboard interrupt.")
    finally:
        logger.info("========== SHUTDOWN COMPLETE ==========")
        shutdown_logging()


if __name__ == "__main__":
    run()
