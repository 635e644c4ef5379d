"""Data models mirrored from the cftunnel process.

Every model here is an immutable snapshot. Callers get read-only copies and
route all mutation through the control bridge.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common.utils import MAX_PORT, MIN_PORT

DEFAULT_RELAY_PORT = 7000


class RunState(str, Enum):
    """Running state derived from status output."""

    RUNNING = "running"
    STOPPED = "stopped"
    NOT_CONFIGURED = "not_configured"
    UNKNOWN = "unknown"


class Proto(str, Enum):
    """Relay rule protocol."""

    TCP = "tcp"
    UDP = "udp"
    HTTP = "http"


class ProbeKind(str, Enum):
    """Which side of a rule a probe measures."""

    LOCAL = "local"
    REMOTE = "remote"


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class InstallationInfo(_Snapshot):
    """Result of the one-shot installation probe."""

    installed: bool = False
    version: str = ""
    detail: str = Field(default="", description="Error detail when not installed")


class TunnelStatus(_Snapshot):
    """Cloud tunnel status text with its classified state."""

    text: str = ""
    state: RunState = RunState.UNKNOWN

    @property
    def running(self) -> bool:
        return self.state == RunState.RUNNING


class Route(_Snapshot):
    """Cloud mode forwarding rule."""

    name: str = Field(min_length=1)
    hostname: str
    service: str


class RelayRule(_Snapshot):
    """Relay mode forwarding rule."""

    name: str = Field(min_length=1)
    proto: Proto = Proto.TCP
    local_port: int = Field(ge=1, le=65535)
    remote_port: int = Field(default=0, ge=0, le=65535, description="0 = unassigned")
    domain: str | None = None

    @field_validator("domain")
    @classmethod
    def empty_domain_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def domain_only_for_http(self) -> "RelayRule":
        if self.domain and self.proto != Proto.HTTP:
            raise ValueError("domain is only allowed for http rules")
        return self


class RelayStatus(_Snapshot):
    """Snapshot of the relay daemon state."""

    server: str = ""
    running: bool = False
    pid: str = ""
    rules: int = Field(default=0, ge=0)

    def _split_server(self) -> tuple[str, int]:
        server = self.server.strip()
        if not server:
            return "", 0
        if server.startswith("["):
            # [v6addr]:port
            host, _, rest = server[1:].partition("]")
            port_text = rest.lstrip(":")
        elif server.count(":") == 1:
            host, _, port_text = server.partition(":")
        else:
            host, port_text = server, ""
        port = int(port_text) if port_text.isdigit() else DEFAULT_RELAY_PORT
        if not MIN_PORT <= port <= MAX_PORT:
            return host, 0
        return host, port

    @property
    def server_host(self) -> str:
        return self._split_server()[0]

    @property
    def server_port(self) -> int:
        """Relay server port, 0 when unset or outside 1-65535."""
        return self._split_server()[1]

    @property
    def pid_number(self) -> int:
        return int(self.pid) if self.pid.isdigit() else 0


class Endpoint(_Snapshot):
    """Host and port a probe connects to."""

    host: str
    port: int = Field(ge=0, le=65535)

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


class ProbeResult(_Snapshot):
    """Outcome of a single reachability measurement."""

    endpoint: Endpoint
    kind: ProbeKind
    ok: bool
    latency_ms: int = Field(default=0, ge=0)
    err: str = ""

    @model_validator(mode="after")
    def failed_probe_has_no_latency(self) -> "ProbeResult":
        if not self.ok and self.latency_ms != 0:
            raise ValueError("failed probe must report latency_ms=0")
        return self


class RuleCheck(_Snapshot):
    """Per-rule diagnostic row."""

    name: str
    proto: Proto = Proto.TCP
    local_port: int = 0
    remote_port: int = 0
    local_ok: bool = False
    remote_ok: bool = False
    latency_ms: int = 0
    local_err: str = ""
    remote_err: str = ""

    @property
    def remote_applicable(self) -> bool:
        return self.remote_port > 0

    @property
    def passed(self) -> bool:
        """Local must pass; remote only counts when a remote port is assigned."""
        return self.local_ok and (not self.remote_applicable or self.remote_ok)


class LinkCheckResult(_Snapshot):
    """Aggregate diagnostic snapshot."""

    server: str = ""
    server_ok: bool = False
    server_latency_ms: int = 0
    server_err: str = ""
    frpc_running: bool = False
    frpc_pid: int = 0
    rules: tuple[RuleCheck, ...] = ()
    total: int = 0
    passed: int = 0
    failed: int = 0

    @model_validator(mode="after")
    def counts_match_rules(self) -> "LinkCheckResult":
        if self.total != len(self.rules):
            raise ValueError("total must equal the number of rules")
        if self.passed + self.failed != self.total:
            raise ValueError("passed + failed must equal total")
        if self.passed != sum(1 for rule in self.rules if rule.passed):
            raise ValueError("passed does not match the per-rule results")
        return self

    @classmethod
    def build(cls, rules: list[RuleCheck] | tuple[RuleCheck, ...] = (), **fields: Any) -> "LinkCheckResult":
        """Create a result, deriving the counts from ``rules``."""
        rules = tuple(rules)
        passed = sum(1 for rule in rules if rule.passed)
        return cls(
            rules=rules,
            total=len(rules),
            passed=passed,
            failed=len(rules) - passed,
            **fields,
        )


class StateSnapshot(_Snapshot):
    """One complete refresh result held by the state cache."""

    installed: bool = False
    version: str = ""
    detail: str = ""
    tunnel_status: TunnelStatus = Field(default_factory=TunnelStatus)
    routes: tuple[Route, ...] = ()
    relay_status: RelayStatus = Field(default_factory=RelayStatus)
    relay_rules: tuple[RelayRule, ...] = ()
    refreshed_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def not_installed(cls, info: InstallationInfo | None = None) -> "StateSnapshot":
        info = info or InstallationInfo()
        return cls(installed=False, version=info.version, detail=info.detail)


class UpdateInfo(_Snapshot):
    """Application update availability."""

    current_version: str
    latest_version: str = ""
    has_update: bool = False
    release_url: str = ""
    err: str = ""
