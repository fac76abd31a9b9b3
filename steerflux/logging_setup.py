"""
History logger for the SteerFlux client.

A single ``steerflux.history`` logger writes tagged lines to a size-rotated
file that lives beside the stored credentials, and to the console unless
``STEERFLUX_LOG_TO_CONSOLE`` is off. Every handler carries a
:class:`TokenRedactingFilter`, so bearer tokens and refresh tokens are masked
before a line is written, even when a caller logs a header mapping or a
request body.
"""

from __future__ import annotations

import logging
import re
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from steerflux.config import get_env, settings

LOGGER_NAME = "steerflux.history"
DEFAULT_MAX_BYTES = 2 * 1024 * 1024  # 2 MB per log file
DEFAULT_BACKUP_COUNT = 5
LINE_FORMAT = "[%(asctime)s] [%(levelname)s] [%(tag)s] %(message)s"
REDACTED = "***"

_TOKEN_PATTERNS = (
    re.compile(r"(Bearer\s+)[^\s'\",}\]]+", re.IGNORECASE),
    re.compile(r"""((?:access|refresh)Token["']?\s*[:=]\s*["']?)[^\s'",}\]]+"""),
)

_configured: bool = False


def redact_tokens(text: str) -> str:
    """Mask bearer credentials and ``accessToken``/``refreshToken`` values in ``text``."""
    for pattern in _TOKEN_PATTERNS:
        text = pattern.sub(r"\g<1>" + REDACTED, text)
    return text


class TokenRedactingFilter(logging.Filter):
    """Rewrites a record's rendered message when it contains credential values."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = redact_tokens(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class TaggedLogger(logging.LoggerAdapter):
    """Adapter that stamps each record with the subsystem tag shown in the log."""

    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        extra.setdefault("tag", self.extra.get("tag", "GEN"))
        return msg, kwargs


def _resolve_level(level: Optional[str]) -> int:
    candidate = str(level or get_env("STEERFLUX_LOG_LEVEL", default="INFO")).upper()
    numeric_level = logging.getLevelName(candidate)
    if isinstance(numeric_level, int):
        return numeric_level

    print(f"SteerFlux logger: unknown log level '{candidate}', using INFO.", file=sys.stderr)
    return logging.INFO


def _build_handlers(log_path: Path, max_bytes: int, backup_count: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        )
    except OSError as exc:
        # The CLI keeps working without a history file.
        print(f"SteerFlux logger: cannot open {log_path}: {exc}", file=sys.stderr)

    if get_env("STEERFLUX_LOG_TO_CONSOLE", default=True):
        handlers.append(logging.StreamHandler())
    return handlers


def configure_logging(
    *,
    log_path: Optional[Path] = None,
    level: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    force: bool = False,
) -> logging.Logger:
    """Attach the history handlers once; ``force`` or a new ``log_path`` rebuilds them."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)

    if _configured and not force and log_path is None:
        if level is not None:
            logger.setLevel(_resolve_level(level))
        return logger

    reset_logging()
    logger.setLevel(_resolve_level(level))

    formatter = logging.Formatter(LINE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%SZ")
    formatter.converter = time.gmtime
    redactor = TokenRedactingFilter()
    resolved_path = Path(log_path) if log_path is not None else settings.log_path
    for handler in _build_handlers(
        resolved_path,
        max_bytes or DEFAULT_MAX_BYTES,
        backup_count or DEFAULT_BACKUP_COUNT,
    ):
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        logger.addHandler(handler)

    logger.propagate = False
    _configured = True
    return logger


def get_logger(tag: str = "GEN") -> TaggedLogger:
    """Return an adapter over the history logger, configuring it on first use."""
    base_logger = logging.getLogger(LOGGER_NAME) if _configured else configure_logging()
    return TaggedLogger(base_logger, {"tag": tag})


# Module-name keyword -> tag; first match wins.
TAG_MAP = {
    "auth": "AUTH",
    "credential": "AUTH",
    "navigation": "AUTH",
    "session": "HTTP",
    "product": "CAT",
    "category": "CAT",
    "message": "MSG",
    "review": "REV",
    "dashboard": "DASH",
    "api_services": "API",
    "cli": "CLI",
}


def get_tag_for_module(module_name: str) -> str:
    module_name = module_name.lower()
    for key, tag in TAG_MAP.items():
        if key in module_name:
            return tag
    return "GEN"


def reset_logging() -> None:
    """Close and detach every history handler."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    _configured = False
