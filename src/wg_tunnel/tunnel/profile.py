"""Parsing of WireGuard profile text into TunnelConfig fields."""

import configparser
import ipaddress
import re
from typing import Any

from ..common.exceptions import ConfigurationError
from ..common.logging import get_logger
from ..common.utils import split_host_port

logger = get_logger(__name__)

SECTION_HEADER = re.compile(r"^\s*\[([^\]]+)\]\s*$")


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _drop_extra_peers(text: str) -> tuple[str, int]:
    """Remove every ``[Peer]`` section after the first one.

    Returns:
        The remaining text and the number of peer sections found
    """
    kept: list[str] = []
    peers = 0
    skipping = False
    for line in text.splitlines():
        match = SECTION_HEADER.match(line)
        if match:
            is_peer = match.group(1).strip() == "Peer"
            if is_peer:
                peers += 1
            skipping = is_peer and peers > 1
        if not skipping:
            kept.append(line)
    return "\n".join(kept), peers


def _parse_int(section: configparser.SectionProxy, key: str) -> int:
    try:
        return int(section[key].strip())
    except ValueError as e:
        raise ConfigurationError(f"Invalid {key}: {section[key]}") from e


def parse_profile(text: str) -> dict[str, Any]:
    """Parse a WireGuard profile.

    Only the first ``[Peer]`` section is used. Keys the tunnel does not
    understand are ignored.

    Args:
        text: Profile text

    Returns:
        Keyword arguments for ``TunnelConfig``

    Raises:
        ConfigurationError: If the text is not a valid profile
    """
    text, peers = _drop_extra_peers(text)
    if peers > 1:
        logger.warning("Profile has several [Peer] sections, using the first", peers=peers)

    parser = configparser.ConfigParser(strict=False, interpolation=None)
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        parser.read_string(text)
    except configparser.Error as e:
        raise ConfigurationError(f"Invalid profile: {e}") from e

    if not parser.has_section("Interface"):
        raise ConfigurationError("Profile has no [Interface] section")

    interface = parser["Interface"]
    values: dict[str, Any] = {}

    if "PrivateKey" in interface:
        values["private_key"] = interface["PrivateKey"]

    addresses = _split_list(interface.get("Address", ""))
    if addresses:
        # The first address becomes the interface address
        try:
            iface = ipaddress.ip_interface(addresses[0])
        except ValueError as e:
            raise ConfigurationError(f"Invalid Address: {addresses[0]}") from e
        values["local_address"] = str(iface.ip)
        values["prefix_length"] = iface.network.prefixlen

    if "DNS" in interface:
        values["dns_servers"] = tuple(_split_list(interface["DNS"]))

    if "MTU" in interface:
        values["mtu"] = _parse_int(interface, "MTU")

    if parser.has_section("Peer"):
        peer = parser["Peer"]
        if "PublicKey" in peer:
            values["peer_public_key"] = peer["PublicKey"]
        if "Endpoint" in peer:
            try:
                host, port = split_host_port(peer["Endpoint"])
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            values["endpoint_host"] = host
            values["endpoint_port"] = port
        if "AllowedIPs" in peer:
            values["routed_prefixes"] = tuple(_split_list(peer["AllowedIPs"]))
        if "PersistentKeepalive" in peer:
            if peer["PersistentKeepalive"].strip().lower() == "off":
                values["keepalive_seconds"] = 0
            else:
                values["keepalive_seconds"] = _parse_int(peer, "PersistentKeepalive")
    else:
        logger.warning("Profile has no [Peer] section")

    logger.debug("Profile parsed", fields=sorted(values))
    return values
