"""Core infrastructure: settings, logging, exceptions, rate limiting."""

from .config import get_settings, settings
from .exceptions import (
    AppException,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
)
from .logging import get_logger, setup_logging


__all__ = [
    "AppException",
    "ConflictError",
    "ExternalServiceError",
    "NotFoundError",
    "get_logger",
    "get_settings",
    "settings",
    "setup_logging",
]
