"""Link diagnostics across relay rules."""

import asyncio
from collections.abc import Callable, Sequence

from .client import CftunnelClient
from .common.exceptions import CftunnelError
from .common.logging import get_logger
from .models import (
    Endpoint,
    LinkCheckResult,
    ProbeKind,
    ProbeResult,
    RelayRule,
    RelayStatus,
    RuleCheck,
)
from .probe import ProbeFunc, classify_error, probe
from .process import pid_alive

logger = get_logger(__name__)

SERVER_NOT_CONFIGURED = "relay server not configured"
INVALID_SERVER_ADDRESS = "invalid relay server address"


class DiagnosticsEngine:
    """Probes every relay rule and the relay server concurrently.

    Each run is independent: no state survives between runs apart from the
    immutable result handed back to the caller.
    """

    def __init__(
        self,
        client: CftunnelClient,
        probe_func: ProbeFunc = probe,
        timeout: float = 3.0,
        max_concurrency: int = 32,
        local_host: str = "127.0.0.1",
        pid_check: Callable[[int], bool] = pid_alive,
    ):
        """Initialize DiagnosticsEngine.

        Args:
            client: Typed access to the cftunnel process
            probe_func: Probe implementation, replaceable for tests
            timeout: Per-probe timeout in seconds
            max_concurrency: Maximum probes in flight at once
            local_host: Host used for local service probes
            pid_check: Liveness check for the relay client PID
        """
        self.client = client
        self.probe_func = probe_func
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.local_host = local_host
        self.pid_check = pid_check

    async def run_check(self) -> LinkCheckResult:
        """Fetch relay status and rules, then probe everything.

        Cancelling the returned coroutine cancels all outstanding probes and
        yields no result.
        """
        status, rules = await asyncio.gather(self._relay_status(), self._relay_rules())
        return await self.check(status, rules)

    async def _relay_status(self) -> RelayStatus:
        try:
            return await self.client.get_relay_status()
        except CftunnelError as e:
            logger.warning("Relay status unavailable for diagnostics", error=str(e))
            return RelayStatus()

    async def _relay_rules(self) -> list[RelayRule]:
        try:
            return await self.client.get_relay_rules()
        except CftunnelError as e:
            logger.warning("Relay rules unavailable for diagnostics", error=str(e))
            return []

    async def check(self, status: RelayStatus, rules: Sequence[RelayRule]) -> LinkCheckResult:
        """Probe the server and ``rules`` and aggregate one snapshot."""
        server_host, server_port = status.server_host, status.server_port
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(endpoint: Endpoint, kind: ProbeKind) -> ProbeResult:
            async with semaphore:
                return await self._safe_probe(endpoint, kind)

        server_task: asyncio.Task[ProbeResult] | None = None
        rule_tasks: list[
            tuple[RelayRule, asyncio.Task[ProbeResult], asyncio.Task[ProbeResult] | None]
        ] = []

        async with asyncio.TaskGroup() as tg:
            if server_host and server_port:
                server_task = tg.create_task(
                    bounded(Endpoint(host=server_host, port=server_port), ProbeKind.REMOTE)
                )
            for rule in rules:
                local_task = tg.create_task(
                    bounded(Endpoint(host=self.local_host, port=rule.local_port), ProbeKind.LOCAL)
                )
                remote_task = None
                if rule.remote_port > 0 and server_host:
                    remote_task = tg.create_task(
                        bounded(Endpoint(host=server_host, port=rule.remote_port), ProbeKind.REMOTE)
                    )
                rule_tasks.append((rule, local_task, remote_task))

        rows = [
            self._rule_row(rule, local_task.result(), remote_task.result() if remote_task else None)
            for rule, local_task, remote_task in rule_tasks
        ]

        server = server_task.result() if server_task else None
        if server is not None:
            server_err = server.err
        elif server_host:
            server_err = INVALID_SERVER_ADDRESS
        else:
            server_err = SERVER_NOT_CONFIGURED
        frpc_pid = status.pid_number
        frpc_running = status.running and (frpc_pid == 0 or self.pid_check(frpc_pid))

        result = LinkCheckResult.build(
            rows,
            server=status.server,
            server_ok=server.ok if server else False,
            server_latency_ms=server.latency_ms if server else 0,
            server_err=server_err,
            frpc_running=frpc_running,
            frpc_pid=frpc_pid if frpc_running else 0,
        )
        logger.info(
            "Link check finished",
            server=status.server,
            server_ok=result.server_ok,
            total=result.total,
            passed=result.passed,
            failed=result.failed,
        )
        return result

    async def _safe_probe(self, endpoint: Endpoint, kind: ProbeKind) -> ProbeResult:
        try:
            return await self.probe_func(endpoint, kind, self.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Probe errors become failed rows
            logger.error("Probe raised", endpoint=str(endpoint), error=str(e))
            return ProbeResult(
                endpoint=endpoint, kind=kind, ok=False, err=classify_error(e, self.timeout)
            )

    @staticmethod
    def _rule_row(rule: RelayRule, local: ProbeResult, remote: ProbeResult | None) -> RuleCheck:
        remote_applicable = rule.remote_port > 0
        if remote_applicable and remote is None:
            remote_ok, remote_err = False, SERVER_NOT_CONFIGURED
        elif remote is not None:
            remote_ok, remote_err = remote.ok, remote.err
        else:
            remote_ok, remote_err = False, ""

        if remote_applicable:
            latency_ms = remote.latency_ms if remote is not None else 0
        else:
            latency_ms = local.latency_ms

        return RuleCheck(
            name=rule.name,
            proto=rule.proto,
            local_port=rule.local_port,
            remote_port=rule.remote_port,
            local_ok=local.ok,
            remote_ok=remote_ok,
            latency_ms=latency_ms,
            local_err=local.err,
            remote_err=remote_err,
        )
