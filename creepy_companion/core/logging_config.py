# creepy_companion/core/logging_config.py
import logging
import sys
from typing import Optional

import structlog

from creepy_companion.core.settings import settings


def setup_logging(log_level_str: str = "INFO", env_type: Optional[str] = None):
    level = getattr(logging, log_level_str.upper(), logging.INFO)
    is_dev = (env_type or settings.ENV_TYPE) == "dev"

    pre_chain = [
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=pre_chain + [
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if is_dev:
        final_processors = [structlog.dev.ConsoleRenderer()]
    else:
        # JSON lines need the traceback as a string field
        final_processors = [structlog.processors.format_exc_info,
                            structlog.processors.JSONRenderer()]

    # Library logs (httpx, pymongo, uvicorn) share the handler and the format
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta] + final_processors,
        foreign_pre_chain=pre_chain,
    ))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # httpx logs every request at INFO; the collaborator clients log their own outcome
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)

    structlog.get_logger("logging_config").info(
        "Logging configured", log_level=log_level_str, renderer="console" if is_dev else "json")
