"""
Logging setup for the service and the sync client.

Modules log through ``logging.getLogger(__name__)``; this only attaches a
single stream handler to the ``app`` logger so uvicorn's own handlers stay
untouched.
"""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("app")
    logger.setLevel(level.upper())

    if not any(getattr(h, "_foampro", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._foampro = True
        logger.addHandler(handler)

    return logger
