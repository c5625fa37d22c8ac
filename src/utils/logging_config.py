"""
Structured logging for the settlement engine.

Every module logs through ``get_logger(__name__)``. Events are snake_case
names with keyword context and are rendered as one JSON object per line on
stderr. Decimal amounts and enum members in the context are rendered as
their string values so money never turns into a float.
"""

import logging
import sys
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from structlog.stdlib import LoggerFactory

from src.core.config import Config

_CONFIGURED = False


def render_domain_values(_logger: Any, _method: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Turn Decimal and Enum values into plain strings."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
        elif isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def configure_logging(level: Optional[str] = None, force: bool = False) -> None:
    """
    Configure structlog and the stdlib root handler.

    Args:
        level: Level name; defaults to Config.LOG_LEVEL.
        force: Reconfigure even if logging was already set up.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    log_level = getattr(logging, (level or Config.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=force)
    logging.getLogger().setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            render_domain_values,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structured logger, configuring logging on first use."""
    configure_logging()
    return structlog.get_logger(name)
