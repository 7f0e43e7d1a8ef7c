"""structlog setup shared by the core service and the edge layer.

Each deployable calls ``setup_logging(<service>)`` once from its ``get_app``
factory. Events are rendered by stdlib handlers through
``structlog.stdlib.ProcessorFormatter`` and tagged with ``service`` so the
two processes can be told apart after aggregation.

``LOG_FORMAT`` selects ``json`` or ``console`` rendering (unset means
console). ``LOG_LEVEL`` takes a stdlib level name and defaults to INFO.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable, MutableMapping
    from typing import Any

    EventDict = MutableMapping[str, Any]
    Processor = Callable[[Any, str, EventDict], EventDict]

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_LOG_FORMATS = ("json", "console")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# The edge makes an auth-check call per protected request; httpx would log
# each one at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _serialize_enums(_logger: object, _method_name: str, event_dict: EventDict) -> EventDict:
    """Log enum members by value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def _add_service(service: str) -> Processor:
    def add_service(_logger: object, _method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def shared_processors() -> list[Processor]:
    """Processors run on every event before it is handed to stdlib logging."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _serialize_enums,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _is_test() -> bool:
    return "pytest" in sys.modules


def _use_json() -> bool:
    value = os.environ.get("LOG_FORMAT", "").lower()
    if value and value not in _LOG_FORMATS:
        msg = f"Invalid LOG_FORMAT={value!r}. Must be 'json', 'console', or unset."
        raise ValueError(msg)
    return value == "json"


def _level_from_env() -> int:
    value = os.environ.get("LOG_LEVEL", "INFO").upper()
    if value not in _LOG_LEVELS:
        msg = f"Invalid LOG_LEVEL={value!r}. Must be one of {', '.join(_LOG_LEVELS)}."
        raise ValueError(msg)
    return logging.getLevelName(value)


def _formatter(*, json_mode: bool, colors: bool = False) -> structlog.stdlib.ProcessorFormatter:
    if json_mode:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors)
    # Exceptions are formatted here rather than in the shared chain so each
    # handler renders the traceback once.
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def _log_file_path(log_dir: Path, service: str) -> Path:
    stamp = datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)
    return log_dir / f"{service}_{stamp}.log"


def setup_logging(
    service: str,
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Route structlog through the root logger to stdout and, optionally, a file.

    Calling it again replaces the previous handlers. When ``log_dir`` is given
    (and we are not under pytest) a ``<service>_<timestamp>.log`` file is
    opened there and its path returned; otherwise the result is None.
    """
    json_mode = _use_json()
    level = _level_from_env() if level is None else level

    structlog.configure(
        processors=[
            *shared_processors(),
            _add_service(service),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_formatter(json_mode=json_mode, colors=sys.stdout.isatty()))
    root.addHandler(console)

    if log_dir is None or _is_test():
        return None

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    file_path = _log_file_path(log_dir, service)
    file_handler = logging.FileHandler(file_path)
    file_handler.setFormatter(_formatter(json_mode=json_mode))
    root.addHandler(file_handler)
    return file_path
