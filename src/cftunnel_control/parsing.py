"""Translation of cftunnel CLI output into models.

The CLI prints human-oriented tables and labels, in Chinese or English
depending on its build. Nothing outside this module looks at that text.
"""

import json
import re
from typing import Any

from pydantic import ValidationError

from .common.exceptions import ParseError
from .common.logging import get_logger
from .common.utils import parse_int
from .models import LinkCheckResult, RelayRule, RelayStatus, Route, RuleCheck, RunState, TunnelStatus

logger = get_logger(__name__)

# Order matters: negated markers contain the positive one ("not running").
_NOT_CONFIGURED_MARKERS = ("未初始化", "not initialized", "not configured")
_STOPPED_MARKERS = ("未运行", "已停止", "not running", "stopped")
_RUNNING_MARKERS = ("运行中", "running")

_EMPTY_ROUTE_MARKERS = ("暂无路由", "no routes")
_EMPTY_RELAY_RULE_MARKERS = ("暂无中继规则", "no relay rules")

_SERVER_LABELS = ("服务器", "server")
_STATE_LABELS = ("状态", "status")
_RULES_LABELS = ("规则数", "rules")

_PID_PATTERN = re.compile(r"PID\s*[:：]\s*(\d+)", re.IGNORECASE)
_LABEL_PATTERN = re.compile(r"^([^:：]+)[:：](.*)$")

QUICK_URL_HOST = "trycloudflare.com"


def classify_run_state(text: str) -> RunState:
    """Classify free status text into a :class:`RunState`."""
    lowered = text.lower()
    if any(marker in lowered for marker in _NOT_CONFIGURED_MARKERS):
        return RunState.NOT_CONFIGURED
    if any(marker in lowered for marker in _STOPPED_MARKERS):
        return RunState.STOPPED
    if any(marker in lowered for marker in _RUNNING_MARKERS):
        return RunState.RUNNING
    return RunState.UNKNOWN


def classify_tunnel_status(text: str) -> TunnelStatus:
    """Build a :class:`TunnelStatus` from ``cftunnel status`` output."""
    text = text.strip()
    return TunnelStatus(text=text, state=classify_run_state(text))


def parse_routes(output: str) -> list[Route]:
    """Parse ``cftunnel list`` output.

    The first line is a header; every following line with at least three
    whitespace separated fields is ``name hostname service``.
    """
    output = output.strip()
    if not output or any(marker in output.lower() for marker in _EMPTY_ROUTE_MARKERS):
        return []

    routes: list[Route] = []
    for line in output.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 3:
            continue
        routes.append(Route(name=fields[0], hostname=fields[1], service=fields[2]))
    return routes


def parse_relay_rules(output: str) -> list[RelayRule]:
    """Parse ``cftunnel relay list`` output.

    Layout is a header line, a separator line, then
    ``name proto local remote [domain]`` rows where ``-`` marks an empty
    column.
    """
    output = output.strip()
    if not output or any(marker in output.lower() for marker in _EMPTY_RELAY_RULE_MARKERS):
        return []

    rules: list[RelayRule] = []
    for line in output.splitlines()[2:]:
        fields = line.split()
        if len(fields) < 4:
            continue
        domain = fields[4] if len(fields) >= 5 and fields[4] != "-" else None
        remote_port = 0 if fields[3] == "-" else parse_int(fields[3])
        try:
            rules.append(
                RelayRule(
                    name=fields[0],
                    proto=fields[1].lower(),
                    local_port=parse_int(fields[2]),
                    remote_port=remote_port,
                    domain=domain,
                )
            )
        except ValidationError as e:
            logger.debug("Skipping unparseable relay rule row", line=line, error=str(e))
    return rules


def _split_label(line: str) -> tuple[str, str] | None:
    match = _LABEL_PATTERN.match(line.strip())
    if match is None:
        return None
    return match.group(1).strip().lower(), match.group(2).strip()


def parse_relay_status(output: str) -> RelayStatus:
    """Parse ``cftunnel relay status`` output into a :class:`RelayStatus`."""
    values: dict[str, Any] = {}
    for line in output.splitlines():
        split = _split_label(line)
        if split is None:
            continue
        label, value = split

        if label in _SERVER_LABELS:
            values["server"] = value
        elif label in _STATE_LABELS:
            if classify_run_state(value) == RunState.RUNNING:
                values["running"] = True
                pid_match = _PID_PATTERN.search(value)
                if pid_match:
                    values["pid"] = pid_match.group(1)
        elif label in _RULES_LABELS:
            values["rules"] = max(parse_int(value), 0)

    return RelayStatus(**values)


def parse_check_json(output: str) -> LinkCheckResult:
    """Parse ``cftunnel relay check --json``.

    Derived counts are recomputed from the rule rows rather than trusted.

    Raises:
        ParseError: If the document is not a valid check result
    """
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid check result JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("Check result must be a JSON object")

    try:
        rules = [RuleCheck.model_validate(row) for row in data.get("rules") or []]
        return LinkCheckResult.build(
            rules,
            server=data.get("server") or "",
            server_ok=bool(data.get("server_ok")),
            server_latency_ms=int(data.get("server_latency_ms") or 0),
            server_err=data.get("server_err") or "",
            frpc_running=bool(data.get("frpc_running")),
            frpc_pid=int(data.get("frpc_pid") or 0),
        )
    except (ValidationError, TypeError, ValueError) as e:
        raise ParseError(f"Invalid check result: {e}") from e


def extract_tunnel_url(output: str) -> str:
    """Return the first public quick tunnel URL found in ``output``."""
    for line in output.splitlines():
        if QUICK_URL_HOST not in line:
            continue
        for word in line.split():
            if word.startswith("https://"):
                return word
    return ""
