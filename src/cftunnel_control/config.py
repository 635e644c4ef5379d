"""Configuration model for the control plane."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .common.exceptions import ConfigurationError

DEFAULT_UPDATE_URL = (
    "https://api.github.com/repos/qingchencloud/cftunnel-app/releases/latest"
)

# Environment variable -> field name
ENV_FIELDS = {
    "CFTUNNEL_BINARY": "binary_path",
    "CFTUNNEL_COMMAND_TIMEOUT": "command_timeout",
    "CFTUNNEL_PROBE_TIMEOUT": "probe_timeout",
    "CFTUNNEL_MAX_PROBES": "max_concurrent_probes",
    "CFTUNNEL_STATE_DIR": "state_dir",
    "CFTUNNEL_QUICK_BINARY": "quick_binary_path",
}


class ControlConfig(BaseModel):
    """Pydantic configuration for the control plane and its diagnostics."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    binary_path: str | None = Field(
        default=None, description="Path to cftunnel binary (auto-detected if None)"
    )
    command_timeout: float = Field(
        default=30.0, ge=0.1, le=600.0, description="External command timeout in seconds"
    )
    probe_timeout: float = Field(
        default=3.0, ge=0.1, le=60.0, description="Per-probe connect timeout in seconds"
    )
    max_concurrent_probes: int = Field(
        default=32, ge=1, le=512, description="Maximum probes in flight at once"
    )
    local_probe_host: str = Field(
        default="127.0.0.1", min_length=1, description="Host used for local service probes"
    )
    state_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cftunnel",
        description="Directory holding quick tunnel pid/url files",
    )
    quick_binary_path: str | None = Field(
        default=None, description="Path to cloudflared binary (auto-detected if None)"
    )
    quick_url_wait: float = Field(
        default=7.5, ge=0.0, le=60.0, description="Seconds to wait for a quick tunnel URL"
    )
    update_url: str = Field(default=DEFAULT_UPDATE_URL, min_length=1)
    app_version: str = Field(default="dev", min_length=1)

    @field_validator("state_dir")
    @classmethod
    def expand_state_dir(cls, v: Path) -> Path:
        """Expand ``~`` in the state directory."""
        return v.expanduser()

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> "ControlConfig":
        """Build a configuration from ``CFTUNNEL_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            **overrides: Explicit values that win over the environment

        Raises:
            ConfigurationError: If a value does not validate
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {
            field: environ[var] for var, field in ENV_FIELDS.items() if environ.get(var)
        }
        values.update(overrides)
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
