"""Utility functions for the control plane."""

import re
from typing import Any

# Port range constants
MIN_PORT = 1
MAX_PORT = 65535

_LEADING_INT = re.compile(r"^\s*(-?\d+)")


def validate_port(port: int, port_name: str = "Port") -> None:
    """Validate port number range.

    Args:
        port: Port number to validate
        port_name: Name of the port for error messages

    Raises:
        ValueError: If port is not in valid range
    """
    if isinstance(port, bool) or not isinstance(port, int) or not (MIN_PORT <= port <= MAX_PORT):
        raise ValueError(f"{port_name} must be between {MIN_PORT} and {MAX_PORT}")


def parse_int(text: str | None, default: int = 0) -> int:
    """Parse the leading integer of a CLI field, e.g. ``"3"`` or ``"42)"``."""
    if not text:
        return default
    match = _LEADING_INT.match(text)
    if match is None:
        return default
    return int(match.group(1))


# Substrings of context keys whose values never reach a log line
SENSITIVE_KEYS = frozenset({"token", "password", "secret", "api_key"})


def mask_sensitive_data(
    value: str | None, mask_char: str = "*", show_chars: int = 4
) -> str:
    """Hide all but the last ``show_chars`` characters of a secret.

    Empty values render as ``<None>``; values no longer than ``show_chars``
    are masked entirely.
    """
    if not value:
        return "<None>"
    hidden = max(len(value) - show_chars, 0) or len(value)
    return mask_char * hidden + value[hidden:]


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def sanitize_log_data(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with relay tokens and passwords masked."""
    return {
        key: mask_sensitive_data(str(value) if value else None) if _is_sensitive(key) else value
        for key, value in data.items()
    }
