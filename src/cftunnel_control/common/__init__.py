"""Common utilities and shared functionality."""

from .exceptions import (
    BinaryNotFoundError,
    CftunnelError,
    ConfigurationError,
    OperationBusyError,
    ParseError,
    ProcessError,
)
from .logging import get_logger, mask_secrets, setup_logging
from .utils import (
    MAX_PORT,
    MIN_PORT,
    mask_sensitive_data,
    parse_int,
    sanitize_log_data,
    validate_port,
)

__all__ = [
    # Exceptions
    "CftunnelError",
    "ProcessError",
    "BinaryNotFoundError",
    "ConfigurationError",
    "ParseError",
    "OperationBusyError",
    # Logging
    "get_logger",
    "mask_secrets",
    "setup_logging",
    # Utils
    "validate_port",
    "parse_int",
    "mask_sensitive_data",
    "sanitize_log_data",
    "MIN_PORT",
    "MAX_PORT",
]
