"""Structlog configuration and logger setup.

Configures structlog once per process. Dispatcher worker threads log through
the same configuration, so every event carries the thread name alongside the
callsite and any bound request context.

Usage:
    from infrastructure.logging import configure_logging, get_module_logger

    configure_logging()

    logger = get_module_logger()
    logger.info("broadcast_claimed", broadcast_id="b1")
"""

import inspect
import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import Processor

from infrastructure.configuration import Settings

# Client libraries that log every HTTP call at INFO/DEBUG.
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "slack_sdk")


def _is_test_environment() -> bool:
    return "pytest" in sys.modules


def add_release(git_sha: str) -> Processor:
    """Return a processor stamping each event with the deployed release."""

    def processor(_logger: Any, _method: str, event_dict: Dict[str, Any]):
        event_dict.setdefault("release", git_sha)
        return event_dict

    return processor


def build_processors(prod_mode: bool, git_sha: str) -> List[Processor]:
    """Processor chain shared by the console and JSON renderers."""
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.THREAD_NAME,
            ]
        ),
        add_release(git_sha),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if prod_mode:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    settings: Optional[Settings] = None,
    log_level: Optional[str] = None,
    is_production: Optional[bool] = None,
) -> BoundLogger:
    """Configure structured logging for the process.

    Args:
        settings: Settings instance; loaded from the environment when omitted.
        log_level: Overrides settings.LOG_LEVEL.
        is_production: Overrides settings.is_production. Production renders
            JSON lines, everything else renders for the console.

    Returns:
        The root bound logger.
    """
    # Nothing is emitted under pytest
    if _is_test_environment():
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(
            format="%(message)s",
            level=logging.CRITICAL + 1,
            force=True,
        )
        return structlog.stdlib.get_logger()

    if settings is None:
        settings = Settings()

    prod_mode = is_production if is_production is not None else settings.is_production
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)

    structlog.configure(
        processors=build_processors(prod_mode, settings.GIT_SHA),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return structlog.stdlib.get_logger()


logger: BoundLogger = configure_logging()


def get_module_logger() -> BoundLogger:
    """Get a logger bound to the calling module.

    Example:
        # In modules/broadcasts/dispatcher.py
        logger = get_module_logger()
        # context: {"component": "dispatcher", "module_path": "modules.broadcasts.dispatcher"}
    """
    current_frame = inspect.currentframe()
    frame = current_frame.f_back if current_frame is not None else None
    if frame is None:
        return logger

    module = inspect.getmodule(frame)
    if module is None:
        return logger.bind(component="unknown")

    module_name = module.__name__
    return logger.bind(
        component=module_name.split(".")[-1],
        module_path=module_name,
    )
