"""Run the API: python -m helpdesk (host, port and log level from the environment)."""

import logging

import uvicorn

from helpdesk.config import HOST, LOG_LEVEL, PORT, STORE_BACKEND

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logger.info("Helpdesk API starting on %s:%s (store: %s).", HOST, PORT, STORE_BACKEND)
    uvicorn.run("helpdesk.main:app", host=HOST, port=PORT, log_config=None)
