"""Builder for the tunnel engine's control-plane configuration."""

from ..common.exceptions import ConfigurationError, MissingFieldError
from ..common.logging import get_logger
from ..common.utils import format_host_port
from .config import TunnelConfig
from .keys import decode_standard_to_hex, fingerprint

logger = get_logger(__name__)

# Engine parsers are line sensitive; this order is fixed
ENGINE_CONFIG_KEYS = (
    "private_key",
    "public_key",
    "endpoint",
    "allowed_ip",
    "persistent_keepalive_interval",
)


class EngineConfigBuilder:
    """Builds the ``key=value`` text the tunnel engine is configured with."""

    def build(self, config: TunnelConfig) -> str:
        """Build engine configuration text.

        Args:
            config: Tunnel configuration

        Returns:
            Five ``key=value`` lines joined by ``\\n``, without trailing
            whitespace, blank lines or a trailing newline

        Raises:
            MissingFieldError: If a required field is empty
            ConfigurationError: If a value would span more than one line
            InvalidKeyEncodingError: If a key is not valid base64
        """
        self._check_required(config)

        primary = config.primary_prefix
        if primary is None:
            raise MissingFieldError("routed_prefixes")

        values = {
            "private_key": decode_standard_to_hex(config.private_key),
            "public_key": decode_standard_to_hex(config.peer_public_key),
            "endpoint": format_host_port(
                config.endpoint_host, config.endpoint_port  # type: ignore[arg-type]
            ),
            "allowed_ip": primary.cidr,
            "persistent_keepalive_interval": str(config.keepalive_seconds),
        }

        for key, value in values.items():
            if "\n" in value or "\r" in value:
                raise ConfigurationError(f"Line break in engine config value: {key}")

        lines = [f"{key}={values[key].strip()}".strip() for key in ENGINE_CONFIG_KEYS]
        text = "\n".join(line for line in lines if line)

        logger.debug(
            "Engine configuration built",
            private_key=fingerprint(config.private_key),
            public_key=config.peer_public_key,
            endpoint=values["endpoint"],
            allowed_ip=values["allowed_ip"],
        )
        return text

    @staticmethod
    def _check_required(config: TunnelConfig) -> None:
        if not config.private_key:
            raise MissingFieldError("private_key")
        if not config.peer_public_key:
            raise MissingFieldError("peer_public_key")
        if not config.endpoint_host:
            raise MissingFieldError("endpoint_host")
        if config.endpoint_port is None:
            raise MissingFieldError("endpoint_port")
        if not config.routed_prefixes:
            raise MissingFieldError("routed_prefixes")


def build_engine_config(config: TunnelConfig) -> str:
    """Shortcut for ``EngineConfigBuilder().build(config)``."""
    return EngineConfigBuilder().build(config)
