"""
Structured logging configuration using structlog.

``dev`` renders colored console lines; every other environment renders one
JSON object per line. Modules keep using stdlib loggers:

    logger = logging.getLogger(__name__)
    logger.info(f"Created job application {application.id}")

and the stdlib bridge turns their records into structured events. Each HTTP
request gets a ``request_id`` bound in main.py, and authenticated requests
also carry ``owner_id`` (see api/deps.py).
"""

import logging
import sys

import structlog

# third-party loggers that are too chatty outside development
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_logging(app_env: str = "dev") -> None:
    """
    Route structlog and stdlib logging through one stdout handler.

    Args:
        app_env: "dev" for console output, anything else for JSON
    """
    processors = _shared_processors()
    renderer = structlog.dev.ConsoleRenderer() if app_env == "dev" else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=processors)
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(logging.INFO)

    if app_env != "dev":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
