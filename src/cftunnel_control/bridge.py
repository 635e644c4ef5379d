"""Command dispatch with per-mode single-flight."""

from pydantic import BaseModel, ConfigDict

from .client import CftunnelClient
from .common.exceptions import OperationBusyError
from .common.logging import get_logger
from .lifecycle import LifecycleRegistry, TunnelMode
from .models import RunState, StateSnapshot
from .operations import BaseOperation, RawCommand
from .state import StateCache

logger = get_logger(__name__)


class ExecutionResult(BaseModel):
    """Outcome of one bridge operation, for display by the shell."""

    model_config = ConfigDict(frozen=True)

    operation: BaseOperation
    output: str = ""
    ok: bool = False
    busy: bool = False


class ControlBridge:
    """Sends operations to the cftunnel process.

    Up/down operations of one mode are single-flight: while one is pending a
    second is answered with ``busy`` and never reaches the process. The CLI
    output of every operation is returned as-is.
    """

    def __init__(
        self,
        client: CftunnelClient,
        cache: StateCache,
        lifecycle: LifecycleRegistry | None = None,
    ):
        self.client = client
        self.cache = cache
        self.lifecycle = lifecycle or LifecycleRegistry()

    def in_flight(self, mode: TunnelMode) -> bool:
        """True while an up/down operation for ``mode`` is pending."""
        return self.lifecycle.in_flight(mode)

    async def execute(self, operation: BaseOperation) -> ExecutionResult:
        """Run ``operation`` and refresh the state cache on success.

        Raises:
            ProcessError: If the process cannot be run at all
        """
        transition = operation.transition
        machine = self.lifecycle[operation.mode] if operation.is_lifecycle else None

        if machine is not None and transition is not None:
            try:
                machine.begin(transition)
            except OperationBusyError as e:
                return ExecutionResult(operation=operation, output=f"busy: {e}", busy=True)

        logger.info("Executing operation", **operation.describe())
        success = False
        try:
            result = await self.client.run(operation.args())
            success = result.ok
        finally:
            if machine is not None and transition is not None:
                machine.finish(transition, success)

        if not result.ok:
            logger.warning(
                "Operation failed", kind=operation.kind, returncode=result.returncode
            )
        elif operation.mutating:
            self._observe(await self.cache.refresh())

        return ExecutionResult(operation=operation, output=result.text, ok=result.ok)

    async def run_text(self, text: str) -> ExecutionResult:
        """Run free-form subcommand text through the escape hatch."""
        return await self.execute(RawCommand(text=text))

    def _observe(self, snapshot: StateSnapshot) -> None:
        if not snapshot.installed:
            return
        # Unrecognised status text says nothing about the cloud tunnel
        if snapshot.tunnel_status.state != RunState.UNKNOWN:
            self.lifecycle[TunnelMode.CLOUD].observe(snapshot.tunnel_status.running)
        self.lifecycle[TunnelMode.RELAY].observe(snapshot.relay_status.running)
