import logging
from typing import Union

ROOT_LOGGER = "automin"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(level: Union[int, str] = logging.WARNING) -> logging.Logger:
    """Attach one stream handler to the package logger.

    Calling it again only updates the level, so repeated CLI runs inside one
    process do not stack handlers.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    if not any(getattr(h, "_automin", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._automin = True
        logger.addHandler(handler)
    return logger


logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())
