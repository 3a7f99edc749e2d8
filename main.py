"""
Main entry point for the AI relay backend.
"""
import logging
import sys

from config import env
from config.sql import init_db


def main():
    logging.basicConfig(
        level=logging.DEBUG if env.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger("main")

    try:
        env.require_settings()
    except env.ConfigError as e:
        logger.critical("%s", e)
        sys.exit(1)

    from api.server import create_app

    try:
        init_db()
    except Exception as e:
        logger.error("DB init failed: %s", e)

    app = create_app()
    logger.info("Starting AI relay on %s:%s (debug=%s)", env.HOST, env.PORT, env.DEBUG)
    app.run(host=env.HOST, port=env.PORT, debug=env.DEBUG, threaded=True)


if __name__ == "__main__":
    main()
