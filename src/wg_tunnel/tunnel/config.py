"""Tunnel configuration models."""

import ipaddress
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..common.utils import split_host_port

MAX_CREDENTIAL_BYTES = 255


class RoutedPrefix(BaseModel):
    """A destination prefix routed into the tunnel."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    address: str = Field(min_length=1, description="Network address")
    prefix_length: int = Field(ge=0, le=128, description="Prefix length in bits")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Validate IP address format."""
        try:
            ipaddress.ip_address(v)
        except ValueError as e:
            raise ValueError(f"Invalid IP address: {v}") from e
        return v

    @property
    def cidr(self) -> str:
        """Prefix in CIDR notation."""
        return f"{self.address}/{self.prefix_length}"

    @classmethod
    def parse(cls, text: str) -> "RoutedPrefix":
        """Parse ``address/prefix`` text; a bare address is a host route."""
        network = ipaddress.ip_network(text.strip(), strict=False)
        return cls(
            address=str(network.network_address),
            prefix_length=network.prefixlen,
        )


class TunnelConfig(BaseModel):
    """Declarative description of one tunnel session.

    Emptiness of the fields needed to start a session is checked when the
    engine configuration is built, not here.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    session_name: str = Field(default="wg-tunnel", description="Interface session label")
    local_address: str = Field(default="", description="Address of the virtual interface")
    prefix_length: int = Field(default=32, ge=0, le=128, description="Local prefix length")
    mtu: int = Field(default=1280, ge=576, le=65535, description="Interface MTU")
    dns_servers: tuple[str, ...] = Field(default=(), description="DNS servers, in order")
    routed_prefixes: tuple[RoutedPrefix, ...] = Field(
        default=(), description="Routed prefixes; the first one is primary"
    )
    excluded_apps: frozenset[str] = Field(
        default_factory=frozenset, description="Apps that bypass the tunnel"
    )
    private_key: str = Field(default="", description="Local private key (base64)")
    peer_public_key: str = Field(default="", description="Peer public key (base64)")
    endpoint_host: str = Field(default="", description="Peer endpoint host")
    endpoint_port: int | None = Field(
        default=None, ge=1, le=65535, description="Peer endpoint port"
    )
    keepalive_seconds: int = Field(
        default=25, ge=0, le=65535, description="Persistent keepalive interval"
    )
    proxy_address: str | None = Field(
        default=None, description="Downstream SOCKS5 proxy as host:port"
    )
    proxy_username: str | None = Field(default=None, description="SOCKS5 username")
    proxy_password: str | None = Field(default=None, description="SOCKS5 password")

    @field_validator("local_address")
    @classmethod
    def validate_local_address(cls, v: str) -> str:
        """Validate the interface address when one is given."""
        if v:
            try:
                ipaddress.ip_address(v)
            except ValueError as e:
                raise ValueError(f"Invalid local address: {v}") from e
        return v

    @field_validator("endpoint_host")
    @classmethod
    def validate_endpoint_host(cls, v: str) -> str:
        """Reject whitespace and control characters in the endpoint host."""
        if any(ch.isspace() or not ch.isprintable() for ch in v):
            raise ValueError(f"Invalid endpoint host: {v!r}")
        return v

    @field_validator("dns_servers")
    @classmethod
    def validate_dns_servers(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Validate DNS server addresses."""
        servers = tuple(server.strip() for server in v)
        for server in servers:
            try:
                ipaddress.ip_address(server)
            except ValueError as e:
                raise ValueError(f"Invalid DNS server: {server}") from e
        return servers

    @field_validator("routed_prefixes", mode="before")
    @classmethod
    def coerce_routed_prefixes(cls, v: Any) -> Any:
        """Accept CIDR strings and drop duplicates while keeping order."""
        if v is None:
            return ()
        seen: dict[str, Any] = {}
        for item in v:
            prefix = RoutedPrefix.parse(item) if isinstance(item, str) else item
            key = prefix.cidr if isinstance(prefix, RoutedPrefix) else repr(prefix)
            seen.setdefault(key, prefix)
        return tuple(seen.values())

    @field_validator("proxy_address")
    @classmethod
    def validate_proxy_address(cls, v: str | None) -> str | None:
        """Normalize an empty proxy address to None and check host:port form."""
        if not v:
            return None
        split_host_port(v)
        return v

    @property
    def primary_prefix(self) -> RoutedPrefix | None:
        """The first routed prefix, if any."""
        return self.routed_prefixes[0] if self.routed_prefixes else None

    @property
    def uses_proxy(self) -> bool:
        """Whether traffic is relayed through a downstream SOCKS5 proxy."""
        return self.proxy_address is not None

    @classmethod
    def from_profile(cls, text: str, **overrides: Any) -> "TunnelConfig":
        """Build a config from WireGuard profile text.

        Args:
            text: Profile in the ``[Interface]`` / ``[Peer]`` format
            **overrides: Fields applied on top of the parsed values

        Returns:
            Parsed tunnel configuration
        """
        from .profile import parse_profile  # noqa: PLC0415

        values = parse_profile(text)
        values.update(overrides)
        return cls(**values)


class ProbeSettings(BaseModel):
    """Timeouts and optional credentials for SOCKS5 probes."""

    model_config = ConfigDict(
        str_strip_whitespace=True, validate_assignment=True, extra="forbid"
    )

    connect_timeout: float = Field(
        default=5.0, ge=0.1, le=60.0, description="TCP connect timeout in seconds"
    )
    read_timeout: float = Field(
        default=5.0, ge=0.1, le=60.0, description="Per-step read timeout in seconds"
    )
    username: str | None = Field(default=None, max_length=255, description="SOCKS5 username")
    password: str | None = Field(default=None, max_length=255, description="SOCKS5 password")

    @property
    def has_credentials(self) -> bool:
        """Whether username/password authentication is offered."""
        return bool(self.username)

    @field_validator("username", "password")
    @classmethod
    def validate_credential_length(cls, v: str | None) -> str | None:
        """Credentials are sent with a one-byte length prefix."""
        if v is not None and len(v.encode("utf-8")) > MAX_CREDENTIAL_BYTES:
            raise ValueError(f"Must be at most {MAX_CREDENTIAL_BYTES} bytes in UTF-8")
        return v
