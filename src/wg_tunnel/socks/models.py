"""Result models for SOCKS5 probes."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProbeFailure(str, Enum):
    """Why a proxy was classified as not offering UDP relaying."""

    NOT_SOCKS5 = "not_socks5"
    AUTH_REQUIRED = "auth_required"
    AUTH_FAILED = "auth_failed"
    UNSUPPORTED_METHOD = "unsupported_method"
    COMMAND_NOT_SUPPORTED = "command_not_supported"
    OTHER_SERVER_ERROR = "other_server_error"
    NETWORK_ERROR = "network_error"


class RelayAddress(BaseModel):
    """UDP relay endpoint reported by the proxy."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(ge=0, le=65535)

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


class ProbeResult(BaseModel):
    """Outcome of one probe invocation."""

    model_config = ConfigDict(frozen=True)

    supports_udp: bool = Field(description="Proxy accepted UDP ASSOCIATE")
    relay_address: RelayAddress | None = Field(default=None, description="Relay endpoint")
    failure_reason: ProbeFailure | None = Field(default=None, description="Classification")
    server_status: int | None = Field(default=None, description="Raw reply status byte")
    detail: str | None = Field(default=None, description="Human-readable explanation")

    @classmethod
    def success(cls, relay_address: RelayAddress | None = None) -> "ProbeResult":
        return cls(supports_udp=True, relay_address=relay_address)

    @classmethod
    def failure(
        cls,
        reason: ProbeFailure,
        detail: str | None = None,
        server_status: int | None = None,
    ) -> "ProbeResult":
        return cls(
            supports_udp=False,
            failure_reason=reason,
            detail=detail,
            server_status=server_status,
        )
