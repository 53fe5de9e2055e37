"""wg-tunnel - tunnel session control and SOCKS5 UDP probing."""

from .common.exceptions import (
    BinaryNotFoundError,
    ConfigurationError,
    EngineError,
    InterfaceError,
    InvalidKeyEncodingError,
    MissingFieldError,
    ProbeError,
    WgTunnelError,
)
from .common.logging import get_logger, setup_logging
from .common.worker import BackgroundWorker
from .socks import (
    ProbeFailure,
    ProbeResult,
    RelayAddress,
    Socks5ProbeClient,
    probe_socks5_udp,
)
from .tunnel import (
    EngineConfigBuilder,
    EngineParams,
    ProbeSettings,
    RoutedPrefix,
    SessionState,
    StartError,
    StartResult,
    TunnelConfig,
    TunnelSessionController,
    decode_standard_to_hex,
)

__version__ = "0.1.0"


__all__ = [
    # Tunnel sessions
    "TunnelSessionController",
    "TunnelConfig",
    "RoutedPrefix",
    "EngineConfigBuilder",
    "EngineParams",
    "SessionState",
    "StartError",
    "StartResult",
    "decode_standard_to_hex",
    # Probing
    "Socks5ProbeClient",
    "ProbeSettings",
    "ProbeResult",
    "ProbeFailure",
    "RelayAddress",
    "probe_socks5_udp",
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
]
