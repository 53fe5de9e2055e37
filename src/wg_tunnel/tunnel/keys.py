"""Key material conversion between profile and engine encodings.

WireGuard profiles carry keys as standard base64. The engine control plane
expects the same 32 bytes rendered as lowercase hex.
"""

import base64
import binascii

from ..common.exceptions import InvalidKeyEncodingError
from ..common.utils import mask_sensitive_data


def decode_standard_to_hex(key: str) -> str:
    """Convert a standard base64 key to lowercase hex.

    Args:
        key: Base64 text, padding included

    Returns:
        Two lowercase hex digits per decoded byte, no separators

    Raises:
        InvalidKeyEncodingError: If the text is empty or not valid base64
    """
    if not key or not key.strip():
        raise InvalidKeyEncodingError("Key is empty")

    try:
        raw = base64.b64decode(key.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyEncodingError(f"Key is not valid base64: {e}") from e

    if not raw:
        raise InvalidKeyEncodingError("Key decodes to zero bytes")

    return raw.hex()


def encode_hex_to_standard(key_hex: str) -> str:
    """Convert a hex key back to standard base64.

    Raises:
        InvalidKeyEncodingError: If the text is not valid hex
    """
    try:
        raw = bytes.fromhex(key_hex)
    except ValueError as e:
        raise InvalidKeyEncodingError(f"Key is not valid hex: {e}") from e
    return base64.b64encode(raw).decode("ascii")


def fingerprint(key: str) -> str:
    """Masked form of a key, safe for log lines."""
    return mask_sensitive_data(key.strip() if key else None, show_chars=6)
