"""femtologging helpers for the ingestion service.

Messages are rendered eagerly with percent-style interpolation and handed to
femtologging as finished strings, so the webhook process and the Dramatiq
workers produce identical lines.

Example:
>>> from leadpipe.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Stored %d events", 3)

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger

# Raw webhook bodies are clipped to this many characters in diagnostics.
RAW_BODY_LOG_LIMIT = 512
_FALLBACK_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Level names femtologging understands."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class _SupportsLog(typ.Protocol):
    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, invalid)`` for a raw level string.

    Unknown or empty values fall back to ``INFO`` and set ``invalid`` so the
    caller can warn about the misconfiguration.
    """
    candidate = (level or "").strip().upper()
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return (_FALLBACK_LEVEL, True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Install the root femtologging handler at ``level``.

    Parameters
    ----------
    level : str
        Raw level string, typically ``LEADPIPE_LOG_LEVEL``.
    force : bool, optional
        Replace an existing handler configuration.

    Returns
    -------
    tuple[str, bool]
        The level actually applied and whether ``level`` was rejected.

    """
    applied, invalid = normalize_log_level(level)
    basicConfig(level=applied, force=force)
    return (applied, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Interpolate ``args`` into ``template``; a bare template is left as is."""
    if not args:
        return template
    return template % args


def truncate_for_log(raw: str | bytes, limit: int = RAW_BODY_LOG_LIMIT) -> str:
    """Clip a raw payload for inclusion in a log line.

    Bytes are decoded leniently; anything beyond ``limit`` characters is
    replaced with a marker recording how much was dropped.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    dropped = len(text) - limit
    if dropped <= 0:
        return text
    return f"{text[:limit]}...[truncated {dropped} chars]"


def log_at(
    logger: _SupportsLog,
    level: LogLevel | str,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Render ``template`` with ``args`` and emit it at ``level``."""
    logger.log(
        str(level),
        format_log_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


def log_info(
    logger: _SupportsLog, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit at INFO."""
    log_at(logger, LogLevel.INFO, template, *args, exc_info=exc_info)


def log_warning(
    logger: _SupportsLog, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit at WARNING."""
    log_at(logger, LogLevel.WARNING, template, *args, exc_info=exc_info)


def log_error(
    logger: _SupportsLog, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit at ERROR."""
    log_at(logger, LogLevel.ERROR, template, *args, exc_info=exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Emit ``message`` at ERROR with ``exc`` attached."""
    log_at(logger, LogLevel.ERROR, "%s", message, exc_info=exc)


__all__ = [
    "RAW_BODY_LOG_LIMIT",
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_at",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
    "truncate_for_log",
]
