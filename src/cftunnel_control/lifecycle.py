"""Per-mode lifecycle state machine.

Each tunnel mode moves through ``stopped -> starting -> running -> stopping``.
A mode with a transition in flight rejects further up/down requests; the
two modes never block each other.
"""

from enum import Enum

from .common.exceptions import OperationBusyError
from .common.logging import get_logger

logger = get_logger(__name__)


class TunnelMode(str, Enum):
    """Independent tunnel modes."""

    CLOUD = "cloud"
    RELAY = "relay"


class Transition(str, Enum):
    """Lifecycle-changing operation direction."""

    UP = "up"
    DOWN = "down"


class TunnelState(str, Enum):
    """Lifecycle state of one mode."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


_TRANSITIONAL = {TunnelState.STARTING, TunnelState.STOPPING}


class LifecycleMachine:
    """State machine for a single tunnel mode."""

    def __init__(self, mode: TunnelMode, state: TunnelState = TunnelState.STOPPED):
        self.mode = mode
        self._state = state
        self._previous: TunnelState | None = None

    @property
    def state(self) -> TunnelState:
        return self._state

    @property
    def in_flight(self) -> bool:
        """True while an up/down transition is pending."""
        return self._state in _TRANSITIONAL

    def begin(self, transition: Transition) -> None:
        """Enter the transitional state for ``transition``.

        Raises:
            OperationBusyError: If a transition is already in flight
        """
        if self.in_flight:
            logger.info(
                "Rejected lifecycle request",
                mode=self.mode.value,
                transition=transition.value,
                state=self._state.value,
            )
            raise OperationBusyError(
                self.mode.value,
                f"{self.mode.value} tunnel is {self._state.value}, try again when it settles",
            )

        self._previous = self._state
        self._state = (
            TunnelState.STARTING if transition == Transition.UP else TunnelState.STOPPING
        )
        logger.debug("Lifecycle transition started", mode=self.mode.value, state=self._state.value)

    def finish(self, transition: Transition, success: bool) -> None:
        """Leave the transitional state."""
        if not self.in_flight:
            logger.warning("finish() without a transition in flight", mode=self.mode.value)
            return

        if success:
            self._state = (
                TunnelState.RUNNING if transition == Transition.UP else TunnelState.STOPPED
            )
        else:
            self._state = self._previous or TunnelState.STOPPED
        self._previous = None
        logger.debug(
            "Lifecycle transition finished",
            mode=self.mode.value,
            state=self._state.value,
            success=success,
        )

    def observe(self, running: bool) -> None:
        """Sync with remotely observed state; ignored mid-transition."""
        if self.in_flight:
            return
        self._state = TunnelState.RUNNING if running else TunnelState.STOPPED


class LifecycleRegistry:
    """Holds one :class:`LifecycleMachine` per tunnel mode."""

    def __init__(self) -> None:
        self._machines = {mode: LifecycleMachine(mode) for mode in TunnelMode}

    def __getitem__(self, mode: TunnelMode) -> LifecycleMachine:
        return self._machines[mode]

    def in_flight(self, mode: TunnelMode) -> bool:
        return self._machines[mode].in_flight
