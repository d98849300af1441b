import logging
from pprint import pformat
from typing import Any

from pydantic import BaseModel

PACKAGE_LOGGER = "chronologicon"
LOG_FORMAT = "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s"


class PprintLogger:
    """Wraps a ``logging.Logger`` so job reports and events can be logged as-is.

    Pydantic models (events, jobs, search pages) are rendered with
    ``model_dump_json``; dicts and lists such as ``IngestionJob.status_report()``
    go through ``pformat``. Plain strings keep %-style argument formatting.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _format_message(self, msg: Any, pprint: bool = True) -> Any:
        if isinstance(msg, str) or not pprint:
            return msg
        if isinstance(msg, BaseModel):
            return msg.model_dump_json(indent=2)
        return pformat(msg, width=120)

    def _log(self, level: int, msg: Any, *args, pprint: bool = True, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, self._format_message(msg, pprint=pprint), *args, **kwargs)

    def debug(self, msg: Any, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: Any, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: Any, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: Any, *args, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: Any, *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        """Delegate anything else to the wrapped logger."""
        return getattr(self._logger, name)


def setup_logging(level: int = logging.INFO, name: str = PACKAGE_LOGGER) -> PprintLogger:
    """Attach a stream handler to the ``chronologicon`` logger tree and return a wrapper.

    Calling this more than once only adjusts the level; handlers are not duplicated.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(level)
    return PprintLogger(logger)
