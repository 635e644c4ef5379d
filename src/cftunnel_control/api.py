"""High-level control plane API used by the presentation shell.

This module wires the process boundary, state cache, control bridge,
diagnostics engine and quick tunnel together behind one object.
"""

from .bridge import ControlBridge, ExecutionResult
from .client import CftunnelClient
from .common.exceptions import CftunnelError
from .common.logging import get_logger
from .config import ControlConfig
from .diagnostics import DiagnosticsEngine
from .lifecycle import LifecycleRegistry, TunnelMode
from .models import LinkCheckResult, StateSnapshot, UpdateInfo
from .operations import BaseOperation
from .probe import ProbeFunc, probe
from .process import CommandRunner
from .quick import QuickResult, QuickTunnel
from .state import StateCache
from .updates import check_app_update

logger = get_logger(__name__)


class ControlPlane:
    """Entry point for the shell.

    Example:
        >>> plane = ControlPlane()
        >>> snapshot = await plane.refresh()
        >>> result = await plane.execute(TunnelUp())
        >>> report = await plane.run_check()
    """

    def __init__(
        self,
        config: ControlConfig | None = None,
        runner: CommandRunner | None = None,
        probe_func: ProbeFunc = probe,
    ):
        """Initialize ControlPlane.

        Args:
            config: Control plane configuration (defaults if None)
            runner: Command runner (built from config if None)
            probe_func: Probe implementation used by diagnostics
        """
        self.config = config or ControlConfig()
        self.runner = runner or CommandRunner(
            binary_path=self.config.binary_path, timeout=self.config.command_timeout
        )
        self.client = CftunnelClient(self.runner)
        self.cache = StateCache(self.client)
        self.lifecycle = LifecycleRegistry()
        self.bridge = ControlBridge(self.client, self.cache, self.lifecycle)
        self.engine = DiagnosticsEngine(
            self.client,
            probe_func=probe_func,
            timeout=self.config.probe_timeout,
            max_concurrency=self.config.max_concurrent_probes,
            local_host=self.config.local_probe_host,
        )
        self.quick = QuickTunnel(
            binary_path=self.config.quick_binary_path,
            state_dir=self.config.state_dir,
            url_wait=self.config.quick_url_wait,
        )
        self._checks_running = 0
        logger.debug(
            "ControlPlane initialized",
            binary_path=self.config.binary_path,
            probe_timeout=self.config.probe_timeout,
        )

    # State

    @property
    def snapshot(self) -> StateSnapshot:
        return self.cache.snapshot

    async def refresh(self) -> StateSnapshot:
        return await self.cache.refresh()

    # Commands

    def in_flight(self, mode: TunnelMode) -> bool:
        """True while an up/down for ``mode`` is pending; the shell disables its controls."""
        return self.bridge.in_flight(mode)

    async def execute(self, operation: BaseOperation) -> ExecutionResult:
        return await self.bridge.execute(operation)

    async def run_command(self, text: str) -> ExecutionResult:
        """Terminal escape hatch: run free-form subcommand text."""
        return await self.bridge.run_text(text)

    async def relay_logs(self) -> str:
        return await self.client.relay_logs()

    # Diagnostics

    @property
    def checking(self) -> bool:
        """True while a link check is running; the shell disables its trigger."""
        return self._checks_running > 0

    async def run_check(self) -> LinkCheckResult:
        self._checks_running += 1
        try:
            return await self.engine.run_check()
        finally:
            self._checks_running -= 1

    async def remote_check(self) -> LinkCheckResult:
        """The CLI's own ``relay check --json`` report, empty when unavailable."""
        try:
            return await self.client.relay_check()
        except CftunnelError as e:
            logger.warning("Remote link check unavailable", error=str(e))
            return LinkCheckResult.build([], server_err=str(e))

    # Quick tunnel

    async def start_quick(self, port: int) -> QuickResult:
        return await self.quick.start(port)

    async def stop_quick(self) -> str:
        return await self.quick.stop()

    def quick_running(self) -> bool:
        return self.quick.running()

    def quick_url(self) -> str:
        return self.quick.url()

    # Application

    def app_version(self) -> str:
        return self.config.app_version

    async def check_app_update(self) -> UpdateInfo:
        return await check_app_update(self.config.app_version, self.config.update_url)

    async def shutdown(self) -> None:
        """Stop a quick tunnel started by this control plane."""
        if self.quick.owns_process:
            await self.quick.stop()
