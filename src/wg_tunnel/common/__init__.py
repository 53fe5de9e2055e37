"""Common utilities and shared functionality."""

from .exceptions import (
    BinaryNotFoundError,
    ConfigurationError,
    EngineError,
    InterfaceError,
    InvalidKeyEncodingError,
    MissingFieldError,
    ProbeError,
    WgTunnelError,
)
from .logging import get_logger, setup_logging
from .utils import (
    MAX_PORT,
    MIN_PORT,
    format_host_port,
    mask_sensitive_data,
    split_host_port,
    to_hex,
    validate_non_empty_string,
    validate_port,
)
from .worker import BackgroundWorker

__all__ = [
    # Workers
    "BackgroundWorker",
    # Exceptions
    "WgTunnelError",
    "ConfigurationError",
    "MissingFieldError",
    "InvalidKeyEncodingError",
    "InterfaceError",
    "EngineError",
    "BinaryNotFoundError",
    "ProbeError",
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "validate_port",
    "validate_non_empty_string",
    "mask_sensitive_data",
    "format_host_port",
    "split_host_port",
    "to_hex",
    "MIN_PORT",
    "MAX_PORT",
]
