"""Session state and result models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    """Lifecycle states of a tunnel session controller."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class StartError(str, Enum):
    """Reasons a session did not start."""

    ALREADY_RUNNING = "already_running"
    INTERFACE_ACQUISITION_FAILED = "interface_acquisition_failed"
    CONFIGURATION_ERROR = "configuration_error"
    ENGINE_START_FAILED = "engine_start_failed"


class StartResult(BaseModel):
    """Outcome of a start request."""

    model_config = ConfigDict(frozen=True)

    ok: bool = Field(description="Whether the session is now running")
    error: StartError | None = Field(default=None, description="Failure reason")
    detail: str | None = Field(default=None, description="Human-readable detail")

    @classmethod
    def success(cls) -> "StartResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: StartError, detail: str | None = None) -> "StartResult":
        return cls(ok=False, error=error, detail=detail)


class EngineParams(BaseModel):
    """Extra parameters passed to the engine alongside the descriptor."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    proxy_username: str = Field(default="", description="SOCKS5 username")
    proxy_password: str = Field(default="", description="SOCKS5 password")
    log_level: int = Field(default=2, ge=0, le=2, description="0 silent, 1 error, 2 verbose")
