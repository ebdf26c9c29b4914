"""Structured logging for autoevolve.

Engine modules log through ``logging.getLogger(__name__)`` and bind the
area or deployment they act on with ``structlog.contextvars``:

    with bound_contextvars(area="model-routing"):
        logger.info("Started experiment %s", experiment_id)

``configure_logging`` installs a structlog ``ProcessorFormatter`` on the
root logger, so those standard records are rendered as JSON (or pretty
console output) with the bound fields merged in.
"""

import logging
import re
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from autoevolve import __version__

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*[a-zA-Z]")
MAX_LOG_LENGTH = 10000


def add_version(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Stamp events with the autoevolve version."""
    event_dict.setdefault("autoevolve_version", __version__)
    return event_dict


def sanitize_log_message(message: str) -> str:
    """Escape line breaks, strip ANSI sequences and truncate long messages."""
    if not message:
        return message

    sanitized = message.replace("\r", "\\r").replace("\n", "\\n")
    sanitized = _ANSI_PATTERN.sub("", sanitized)

    if len(sanitized) > MAX_LOG_LENGTH:
        sanitized = sanitized[: MAX_LOG_LENGTH - 20] + "... [TRUNCATED]"

    return sanitized


def sanitize_event(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Hypotheses and reasons are caller text; keep them on one line."""
    event = event_dict.get("event", "")
    if isinstance(event, str):
        event_dict["event"] = sanitize_log_message(event)
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_version,
        sanitize_event,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    level: str | int = logging.INFO,
    json_output: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Route autoevolve's log records through structlog.

    Args:
        level: Root log level name or number.
        json_output: Render JSON lines. Defaults to True when stdout is
            not a TTY.
        log_file: Optional file that receives the same records.
    """
    if json_output is None:
        json_output = not sys.stdout.isatty()

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=_pre_chain(),
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)


def configure_logging_from_settings() -> None:
    """Configure logging from the cached EvolutionSettings."""
    # Import here to avoid circular imports
    from autoevolve.core.settings import get_cached_settings

    settings = get_cached_settings()

    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        log_file=settings.logging.file,
    )


def reset_logging() -> None:
    """Drop handlers and bound context (used by tests)."""
    structlog.contextvars.clear_contextvars()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
