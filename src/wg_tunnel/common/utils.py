"""Utility functions shared by the tunnel and probe modules."""

import ipaddress

# Port range constants
MIN_PORT = 1
MAX_PORT = 65535


def validate_port(port: int, port_name: str = "Port") -> None:
    """Validate port number range.

    Args:
        port: Port number to validate
        port_name: Name of the port for error messages

    Raises:
        ValueError: If port is not in valid range (1-65535)
    """
    if not isinstance(port, int) or not (MIN_PORT <= port <= MAX_PORT):
        raise ValueError(f"{port_name} must be between {MIN_PORT} and {MAX_PORT}")


def validate_non_empty_string(value: str, field_name: str) -> str:
    """Validate that a string is not empty or only whitespace.

    Args:
        value: String value to validate
        field_name: Name of the field for error messages

    Returns:
        Stripped string value

    Raises:
        ValueError: If string is empty or only whitespace
    """
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value.strip()


def mask_sensitive_data(
    value: str | None, mask_char: str = "*", show_chars: int = 4
) -> str:
    """Mask sensitive data for logging while preserving some characters for debugging.

    Args:
        value: Sensitive string to mask (e.g., private key, proxy password)
        mask_char: Character to use for masking
        show_chars: Number of characters to show at the end

    Returns:
        Masked string
    """
    if not value:
        return ""

    if len(value) <= show_chars:
        return mask_char * len(value)

    return mask_char * (len(value) - show_chars) + value[-show_chars:]


def format_host_port(host: str, port: int) -> str:
    """Join host and port, bracketing IPv6 literals."""
    try:
        if ipaddress.ip_address(host).version == 6:
            return f"[{host}]:{port}"
    except ValueError:
        pass
    return f"{host}:{port}"


def split_host_port(address: str) -> tuple[str, int]:
    """Split a ``host:port`` string, accepting bracketed IPv6 hosts.

    Raises:
        ValueError: If the address has no port or the port is invalid
    """
    address = validate_non_empty_string(address, "Address")
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise ValueError(f"Invalid address: {address}")
        port_text = rest[1:]
    else:
        host, sep, port_text = address.rpartition(":")
        if not sep or not host:
            raise ValueError(f"Address must be in host:port form: {address}")

    try:
        port = int(port_text)
    except ValueError as e:
        raise ValueError(f"Invalid port in address: {address}") from e

    validate_port(port)
    return host, port


def to_hex(data: bytes) -> str:
    """Render bytes as space separated uppercase hex for log lines."""
    return " ".join(f"{b:02X}" for b in data)
