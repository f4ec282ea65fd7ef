"""structlog configuration for albumlog.

Every module logs key/value events through structlog::

    logger = get_logger(__name__)
    logger.warning("cover_art_fetch_failed", release_id=release_id, error=str(exc))

Two renderers share one processor chain: a coloured console renderer for
development and a JSON renderer for production.  ``build_services`` picks
between them from ``Settings.app_env``; callers that never configure
logging get the console renderer on first :func:`get_logger` call.

Standard-library records (httpx, redis) are routed through the same chain
via ``ProcessorFormatter``.  httpx and httpcore are held at WARNING or
above because the MusicBrainz client issues several requests per search.
"""

import logging
import sys

import structlog

_QUIET_LIBRARIES = ("httpx", "httpcore")


def _shared_processors() -> list[structlog.types.Processor]:
    # contextvars first so bound request context is visible to later steps.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _renderer(use_json: bool) -> structlog.types.Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def _route_stdlib_logging(
    level: int, processors: list[structlog.types.Processor], renderer: structlog.types.Processor
) -> None:
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *processors,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(logging.WARNING, level))


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    app_env: str = "development",
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Force the JSON renderer.
        app_env: Deployment environment; ``"production"`` selects JSON.

    Returns:
        A logger bound to the new configuration.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors = _shared_processors()
    renderer = _renderer(json_output or app_env == "production")

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _route_stdlib_logging(level, processors, renderer)

    return structlog.get_logger()


def get_logger(name: str, **context: object) -> structlog.BoundLogger:
    """Return a logger named *name*, optionally bound to extra *context*.

    Configures logging with defaults if nothing has configured it yet.
    """
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name, **context)
