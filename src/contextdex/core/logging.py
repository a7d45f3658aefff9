"""Structured logging for the CLI, the HTTP daemon and the stdio MCP server.

Each process calls configure_logging once. structlog events are rendered by
stdlib handlers, one per configured output, so library loggers (uvicorn,
watchfiles, the MCP SDK) land in the same streams. Events logged while an
MCP tool call runs carry its request id.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from contextdex.config.models import LoggingConfig, LogOutputConfig

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

# Upstream loggers that report every request or filtered file change
_QUIET_LOGGERS = (
    "mcp.server.lowlevel.server",
    "mcp.server.streamable_http",
    "fastmcp.server.context.to_client",
    "watchfiles.main",
)


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set or generate request correlation ID."""
    rid = request_id or uuid4().hex[:12]
    _request_id.set(rid)
    return rid


def clear_request_id() -> None:
    _request_id.set(None)


def _add_request_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if rid := get_request_id():
        event_dict["request_id"] = rid
    return event_dict


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def _create_handler(destination: str, stdio: bool) -> logging.Handler:
    # stdout carries MCP protocol frames in stdio mode
    if destination == "stdout" and not stdio:
        return logging.StreamHandler(sys.stdout)
    if destination in ("stderr", "stdout"):
        return logging.StreamHandler(sys.stderr)
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a")


def _create_formatter(
    output: LogOutputConfig,
    handler: logging.Handler,
    shared_processors: list[structlog.types.Processor],
) -> logging.Formatter:
    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        stream = getattr(handler, "stream", None)
        colors = isinstance(handler, logging.StreamHandler) and bool(stream and stream.isatty())
        renderer = structlog.dev.ConsoleRenderer(colors=colors, pad_event_to=0, pad_level=False)
    return structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors)


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    level: str = "INFO",
    log_file: Path | None = None,
    stdio: bool = False,
) -> None:
    """Install one root handler per output and route structlog through them.

    Args:
        config: Outputs and levels. Defaults to console on stderr at ``level``.
        log_file: Extra JSON output at DEBUG, the daemon's server.log.
        stdio: stdout is reserved for protocol frames; stdout outputs go to stderr.
    """
    from contextdex.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(level=level, outputs=[LogOutputConfig()])

    outputs = list(config.outputs)
    if log_file is not None:
        outputs.append(LogOutputConfig(format="json", destination=str(log_file.resolve()), level="DEBUG"))

    output_levels = [_level(output.level or config.level) for output in outputs]
    root_level = min(output_levels, default=_level(config.level))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_request_id,  # type: ignore[list-item]
    ]
    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfigured per process and per test
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for output, output_level in zip(outputs, output_levels, strict=True):
        handler = _create_handler(output.destination, stdio)
        handler.setLevel(output_level)
        handler.setFormatter(_create_formatter(output, handler, shared_processors))
        root_logger.addHandler(handler)
