"""
Tagged shortcuts over the client history logger.

Call sites pass a plain message; unless ``tag`` is given, the tag comes from
the calling module via :data:`steerflux.logging_setup.TAG_MAP`.
"""

from __future__ import annotations

import inspect
import logging
from typing import Optional, Union

from steerflux.logging_setup import get_logger, get_tag_for_module


def _caller_tag() -> str:
    """Tag of the first frame outside this module."""
    frame = inspect.currentframe()
    try:
        while frame is not None and frame.f_globals.get("__name__") == __name__:
            frame = frame.f_back
        module_name = frame.f_globals.get("__name__", "unknown") if frame is not None else "unknown"
    finally:
        del frame
    return get_tag_for_module(module_name)


def _level_number(level: Union[str, int]) -> Optional[int]:
    if isinstance(level, int):
        return level
    name = str(level).upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else None


def log_message(msg: str, level: Union[str, int] = "INFO", tag: str | None = None, **kwargs) -> None:
    """Write ``msg`` to the history log.

    Remaining keyword arguments (``exc_info=True`` and friends) are passed to
    :meth:`logging.Logger.log` untouched.
    """
    logger = get_logger(tag or _caller_tag())
    numeric_level = _level_number(level)
    if numeric_level is None:
        logger.warning("Unknown log level %r; writing at INFO.", level)
        numeric_level = logging.INFO
    logger.log(numeric_level, msg, **kwargs)


def debug(msg: str, tag: str | None = None, **kwargs) -> None:
    log_message(msg, "DEBUG", tag, **kwargs)


def info(msg: str, tag: str | None = None, **kwargs) -> None:
    log_message(msg, "INFO", tag, **kwargs)


def warn(msg: str, tag: str | None = None, **kwargs) -> None:
    log_message(msg, "WARNING", tag, **kwargs)


def error(msg: str, tag: str | None = None, **kwargs) -> None:
    log_message(msg, "ERROR", tag, **kwargs)
