"""Structured logging setup using structlog.

Every log line passes through one processor chain: request-scoped context
vars, level, timestamp, exception info.  The last step renders either
coloured console output (development) or JSON lines (production, or when
``json_output`` is forced).

Standard-library ``logging`` is bridged into the same chain so httpx,
openai and uvicorn output is formatted like ours.  The HTTP middleware
binds a ``request_id`` with :func:`bind_request_context`; everything
logged while that request is handled (retrieval stages, completion
streaming, indexing steps) carries it.
"""

import logging
import sys
import uuid

import structlog

# Third-party loggers that emit a line per HTTP call at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


def _processor_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _renderer(use_json: bool) -> structlog.types.Processor:
    if use_json:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    app_env: str = "development",
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib bridge.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON lines regardless of ``app_env``.
        app_env: ``"production"`` selects JSON lines.

    Returns:
        A configured structlog BoundLogger.
    """
    level = logging.getLevelName(log_level.upper())
    chain = _processor_chain()
    renderer = _renderer(json_output or app_env == "production")

    structlog.configure(
        processors=[*chain, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *chain,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Named logger; configures defaults on first use if nothing else has."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


def bind_request_context(request_id: str | None = None, **values: object) -> str:
    """Start a fresh request context and return its request id.

    Any context left over from a previous request on this task is dropped
    first.  A missing ``request_id`` is generated.
    """
    request_id = request_id or uuid.uuid4().hex[:16]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **values)
    return request_id
