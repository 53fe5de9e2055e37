"""Tunnel session management.

Configuration, engine control text, collaborator protocols and the session
controller.
"""

# Config
from .builder import ENGINE_CONFIG_KEYS, EngineConfigBuilder, build_engine_config
from .config import ProbeSettings, RoutedPrefix, TunnelConfig

# Controller
from .controller import TunnelSessionController

# Collaborators
from .interfaces import EngineSession, InterfaceHandle, InterfaceProvider, TunnelEngine
from .keys import decode_standard_to_hex, encode_hex_to_standard, fingerprint
from .linux import DescriptorHandle, LinuxTunProvider

# Models
from .models import EngineParams, SessionState, StartError, StartResult
from .process import ProcessSession, SubprocessEngine

__all__ = [
    # Config
    "TunnelConfig",
    "RoutedPrefix",
    "ProbeSettings",
    "EngineConfigBuilder",
    "ENGINE_CONFIG_KEYS",
    "build_engine_config",
    # Keys
    "decode_standard_to_hex",
    "encode_hex_to_standard",
    "fingerprint",
    # Models
    "SessionState",
    "StartError",
    "StartResult",
    "EngineParams",
    # Controller
    "TunnelSessionController",
    # Collaborators
    "InterfaceHandle",
    "InterfaceProvider",
    "EngineSession",
    "TunnelEngine",
    "DescriptorHandle",
    "LinuxTunProvider",
    "SubprocessEngine",
    "ProcessSession",
]
