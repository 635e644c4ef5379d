"""Tests for common helpers."""

import pytest

from cftunnel_control.common.utils import (
    MAX_PORT,
    MIN_PORT,
    SENSITIVE_KEYS,
    mask_sensitive_data,
    parse_int,
    sanitize_log_data,
    validate_port,
)


class TestValidatePort:
    """Test port range checks."""

    @pytest.mark.parametrize("port", [MIN_PORT, 22, 8080, MAX_PORT])
    def test_in_range(self, port):
        """Ports 1-65535 are accepted."""
        validate_port(port, "Local port")

    @pytest.mark.parametrize("port", [0, -1, MAX_PORT + 1])
    def test_out_of_range(self, port):
        """Ports outside 1-65535 are rejected with the field name."""
        with pytest.raises(ValueError, match="Local port must be between 1 and 65535"):
            validate_port(port, "Local port")

    @pytest.mark.parametrize("port", ["6000", True, 80.0, None])
    def test_non_int_rejected(self, port):
        """Strings, bools and floats are not ports."""
        with pytest.raises(ValueError):
            validate_port(port, "Remote port")  # type: ignore[arg-type]


class TestParseInt:
    """Test leading integer parsing of CLI fields."""

    @pytest.mark.parametrize(
        "text,expected",
        [("3", 3), ("  42 ", 42), ("4321)", 4321), ("8080/tcp", 8080), ("-1", -1)],
    )
    def test_leading_number(self, text, expected):
        """The leading integer is taken, trailing text ignored."""
        assert parse_int(text) == expected

    @pytest.mark.parametrize("text", ["", None, "-", "abc", "pid?"])
    def test_falls_back_to_default(self, text):
        """Unparseable fields give the default."""
        assert parse_int(text) == 0
        assert parse_int(text, default=7) == 7


class TestMaskSensitiveData:
    """Test secret masking."""

    def test_keeps_tail(self):
        """Only the last characters stay visible."""
        assert mask_sensitive_data("relaytoken99") == "********en99"
        assert mask_sensitive_data("relaytoken99", show_chars=2) == "**********99"

    def test_short_values_fully_hidden(self):
        """Values no longer than the visible tail are masked entirely."""
        assert mask_sensitive_data("pw") == "**"
        assert mask_sensitive_data("abcd") == "****"
        assert mask_sensitive_data("abc", mask_char="#") == "###"

    def test_empty(self):
        """Missing secrets render as a placeholder."""
        assert mask_sensitive_data(None) == "<None>"
        assert mask_sensitive_data("") == "<None>"


class TestSanitizeLogData:
    """Test masking of operation parameters before logging."""

    def test_relay_init_parameters(self):
        """The relay token and SSH password are masked, the rest is kept."""
        params = {
            "kind": "relay-init",
            "server": "relay.example.com:7000",
            "token": "secret123456",
            "ssh_password": "mypassword",
        }

        sanitized = sanitize_log_data(params)

        assert sanitized == {
            "kind": "relay-init",
            "server": "relay.example.com:7000",
            "token": "********3456",
            "ssh_password": "******word",
        }
        assert params["token"] == "secret123456"

    def test_key_match_ignores_case(self):
        """Upper-case keys are still recognised."""
        assert sanitize_log_data({"CF_API_TOKEN": "abcdef123456"})["CF_API_TOKEN"] == "********3456"

    def test_non_string_and_empty_values(self):
        """Non-string secrets are stringified and empty ones become a placeholder."""
        sanitized = sanitize_log_data({"password": None, "secret": 12345678})
        assert sanitized == {"password": "<None>", "secret": "****5678"}

    def test_nothing_sensitive(self):
        """Plain route parameters pass through unchanged."""
        params = {"name": "web", "local_port": 8080, "remote_port": 0}
        assert sanitize_log_data(params) == params

    def test_markers(self):
        """Token and password are always treated as secrets."""
        assert {"token", "password"} <= SENSITIVE_KEYS
