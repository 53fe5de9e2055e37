"""Custom exceptions for the tunnel session core."""


class WgTunnelError(Exception):
    """Base exception for all wg_tunnel errors."""
    pass


class ConfigurationError(WgTunnelError):
    """Raised when a tunnel configuration cannot be turned into engine config."""
    pass


class MissingFieldError(ConfigurationError):
    """Raised when a field required to start a session is empty."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Required field is empty: {field}")


class InvalidKeyEncodingError(ConfigurationError):
    """Raised when key material is not valid standard base64."""
    pass


class InterfaceError(WgTunnelError):
    """Raised when the host cannot provide a virtual network interface."""
    pass


class EngineError(WgTunnelError):
    """Raised when the tunnel engine fails to start or stop."""
    pass


class BinaryNotFoundError(EngineError):
    """Raised when the engine binary is not found or not executable."""
    pass


class ProbeError(WgTunnelError):
    """Raised for invalid probe arguments."""
    pass
