"""SOCKS5 capability probing."""

from .models import ProbeFailure, ProbeResult, RelayAddress
from .probe import Socks5ProbeClient, parse_relay_address, probe_socks5_udp

__all__ = [
    "ProbeFailure",
    "ProbeResult",
    "RelayAddress",
    "Socks5ProbeClient",
    "parse_relay_address",
    "probe_socks5_udp",
]
