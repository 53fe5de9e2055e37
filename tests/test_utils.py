"""Tests for utility functions."""

import pytest

from wg_tunnel.common.utils import (
    format_host_port,
    mask_sensitive_data,
    split_host_port,
    to_hex,
    validate_non_empty_string,
    validate_port,
)


class TestValidatePort:
    """Test port validation function."""

    def test_valid_ports(self):
        """Test validation of valid ports."""
        validate_port(1, "Test port")
        validate_port(1080, "SOCKS port")
        validate_port(51820, "Endpoint port")
        validate_port(65535, "Max port")

    def test_invalid_ports(self):
        """Test validation of invalid ports."""
        with pytest.raises(ValueError, match="Test port must be between 1 and 65535"):
            validate_port(0, "Test port")

        with pytest.raises(ValueError, match="Test port must be between 1 and 65535"):
            validate_port(65536, "Test port")

    def test_non_integer_ports(self):
        """Test validation of non-integer ports."""
        with pytest.raises(ValueError):
            validate_port("80", "Test port")  # type: ignore


class TestValidateNonEmptyString:
    """Test non-empty string validation function."""

    def test_valid_strings(self):
        assert validate_non_empty_string("  test  ", "Field") == "test"

    def test_empty_strings(self):
        with pytest.raises(ValueError, match="Field cannot be empty"):
            validate_non_empty_string("   ", "Field")


class TestMaskSensitiveData:
    """Test sensitive data masking."""

    def test_mask_long_value(self):
        assert mask_sensitive_data("secret_token_123") == "************_123"

    def test_mask_short_value(self):
        assert mask_sensitive_data("abc") == "***"

    def test_mask_empty(self):
        assert mask_sensitive_data(None) == ""
        assert mask_sensitive_data("") == ""


class TestHostPort:
    """Test host:port helpers."""

    @pytest.mark.parametrize(
        "address,expected",
        [
            ("127.0.0.1:1080", ("127.0.0.1", 1080)),
            ("proxy.example.com:1080", ("proxy.example.com", 1080)),
            ("[2001:db8::1]:51820", ("2001:db8::1", 51820)),
        ],
    )
    def test_split(self, address, expected):
        assert split_host_port(address) == expected

    @pytest.mark.parametrize(
        "address", ["", "127.0.0.1", ":1080", "host:port", "host:0", "[::1]1080"]
    )
    def test_split_invalid(self, address):
        with pytest.raises(ValueError):
            split_host_port(address)

    def test_format(self):
        assert format_host_port("10.0.0.1", 51820) == "10.0.0.1:51820"
        assert format_host_port("::1", 51820) == "[::1]:51820"
        assert format_host_port("vpn.example.com", 443) == "vpn.example.com:443"


def test_to_hex():
    assert to_hex(bytes([0x05, 0x00, 0xFF])) == "05 00 FF"
    assert to_hex(b"") == ""
