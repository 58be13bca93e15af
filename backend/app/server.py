"""
Process entrypoint.

Runs the API under uvicorn. SIGINT/SIGTERM are handled by uvicorn, which
runs the lifespan shutdown (MongoDB disconnect) before exiting. A startup
failure (store unreachable, provisioning error, port in use) makes uvicorn
exit non-zero.
"""

import logging

import uvicorn

from backend.app.core.config import settings

logger = logging.getLogger("drivers_tracking.server")


def run() -> None:
    logger.info("Starting server on %s:%d (%s)", settings.host, settings.port, settings.node_env)
    uvicorn.run(
        "backend.app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.effective_log_level.lower(),
    )


if __name__ == "__main__":
    run()
