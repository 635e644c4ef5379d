"""cftunnel control plane - state sync, command dispatch and link diagnostics."""

# High-level API
from .api import ControlPlane
from .bridge import ControlBridge, ExecutionResult
from .client import CftunnelClient

# Common utilities
from .common.exceptions import (
    BinaryNotFoundError,
    CftunnelError,
    ConfigurationError,
    OperationBusyError,
    ParseError,
    ProcessError,
)
from .common.logging import get_logger, setup_logging
from .config import ControlConfig
from .diagnostics import DiagnosticsEngine
from .lifecycle import LifecycleMachine, LifecycleRegistry, Transition, TunnelMode, TunnelState
from .models import (
    Endpoint,
    InstallationInfo,
    LinkCheckResult,
    ProbeKind,
    ProbeResult,
    Proto,
    RelayRule,
    RelayStatus,
    Route,
    RuleCheck,
    RunState,
    StateSnapshot,
    TunnelStatus,
    UpdateInfo,
)

# Operations
from .operations import (
    AddRelayRule,
    AddRoute,
    BaseOperation,
    InstallService,
    Operation,
    RawCommand,
    RelayDown,
    RelayInit,
    RelayServerSetup,
    RelayUp,
    RemoveRelayRule,
    RemoveRoute,
    TunnelDown,
    TunnelUp,
    UninstallService,
    parse_operation,
)
from .probe import probe
from .process import CommandResult, CommandRunner
from .quick import QuickResult, QuickTunnel
from .state import StateCache

# Setup logging on package initialization
setup_logging(level="INFO")

# Package level logger
logger = get_logger(__name__)

__version__ = "0.1.0"


__all__ = [
    # High-level API
    "ControlPlane",
    "ControlConfig",
    # Core components
    "StateCache",
    "ControlBridge",
    "ExecutionResult",
    "DiagnosticsEngine",
    "CftunnelClient",
    "CommandRunner",
    "CommandResult",
    "QuickTunnel",
    "QuickResult",
    "probe",
    # Lifecycle
    "LifecycleMachine",
    "LifecycleRegistry",
    "TunnelMode",
    "TunnelState",
    "Transition",
    # Models
    "InstallationInfo",
    "TunnelStatus",
    "RunState",
    "Route",
    "Proto",
    "RelayRule",
    "RelayStatus",
    "Endpoint",
    "ProbeKind",
    "ProbeResult",
    "RuleCheck",
    "LinkCheckResult",
    "StateSnapshot",
    "UpdateInfo",
    # Operations
    "Operation",
    "BaseOperation",
    "TunnelUp",
    "TunnelDown",
    "RelayUp",
    "RelayDown",
    "AddRoute",
    "RemoveRoute",
    "AddRelayRule",
    "RemoveRelayRule",
    "RelayInit",
    "InstallService",
    "UninstallService",
    "RelayServerSetup",
    "RawCommand",
    "parse_operation",
    # Exceptions
    "CftunnelError",
    "ProcessError",
    "BinaryNotFoundError",
    "ConfigurationError",
    "ParseError",
    "OperationBusyError",
    # Utilities
    "get_logger",
    "setup_logging",
]
