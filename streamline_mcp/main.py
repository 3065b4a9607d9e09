"""
Streamline MCP - HTTP entry point.

All initialization logic is in app/factory.py; ``streamline-mcp serve`` is
the usual way to start the server.
"""
import os
import logging

import uvicorn

from streamline_mcp.app import create_app

logger = logging.getLogger(__name__)

# Module-level app for ``uvicorn streamline_mcp.main:app``
app = create_app()

if __name__ == "__main__":
    port = int(os.getenv("STREAMLINE_PORT", "8004"))

    config = uvicorn.Config(
        app,
        host=os.getenv("STREAMLINE_HOST", "127.0.0.1"),
        port=port,
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
        access_log=True,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
    server = uvicorn.Server(config)

    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
