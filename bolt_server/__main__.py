"""Entry point for bolt_server."""

import logging

import uvicorn

from bolt_server.config import Config
from bolt_server.dependencies import Dependencies
from bolt_server.server import create_app  # This import also configures logging

logger = logging.getLogger(__name__)


def run_server() -> None:
    """Run the HTTP server on the configured host and port."""
    config = Config.from_env()
    app = create_app(Dependencies.from_config(config))

    logger.info(
        "Starting bolt_server (host=%s, port=%d, level=%s)",
        config.http_host,
        config.http_port,
        config.settings.log_level,
    )
    uvicorn.run(app, host=config.http_host, port=config.http_port, log_config=None)


if __name__ == "__main__":
    run_server()
