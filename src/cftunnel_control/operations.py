"""Commands accepted by the control bridge.

The set of operations is closed. :class:`RawCommand` is the only free-form
variant and exists for the terminal view of the shell.
"""

from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter

from .common.utils import sanitize_log_data
from .lifecycle import Transition, TunnelMode
from .models import Proto


def _validate_name(v: str) -> str:
    if not v or any(ch.isspace() for ch in v):
        raise ValueError("Name must be non-empty and contain no whitespace")
    return v


Name = Annotated[str, AfterValidator(_validate_name)]
Port = Annotated[int, Field(ge=1, le=65535)]


class BaseOperation(BaseModel):
    """Base for all bridge operations."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    MODE: ClassVar[TunnelMode | None] = None
    TRANSITION: ClassVar[Transition | None] = None
    MUTATING: ClassVar[bool] = True

    kind: str

    @property
    def mode(self) -> TunnelMode | None:
        """Tunnel mode whose lifecycle this operation changes, if any."""
        return self.MODE

    @property
    def transition(self) -> Transition | None:
        return self.TRANSITION

    @property
    def mutating(self) -> bool:
        return self.MUTATING

    @property
    def is_lifecycle(self) -> bool:
        return self.mode is not None and self.transition is not None

    def args(self) -> list[str]:
        """CLI arguments after the binary name."""
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        """Log-safe description of the operation."""
        return sanitize_log_data(self.model_dump(mode="json"))


class TunnelUp(BaseOperation):
    MODE = TunnelMode.CLOUD
    TRANSITION = Transition.UP

    kind: Literal["tunnel-up"] = "tunnel-up"

    def args(self) -> list[str]:
        return ["up"]


class TunnelDown(BaseOperation):
    MODE = TunnelMode.CLOUD
    TRANSITION = Transition.DOWN

    kind: Literal["tunnel-down"] = "tunnel-down"

    def args(self) -> list[str]:
        return ["down"]


class RelayUp(BaseOperation):
    MODE = TunnelMode.RELAY
    TRANSITION = Transition.UP

    kind: Literal["relay-up"] = "relay-up"

    def args(self) -> list[str]:
        return ["relay", "up"]


class RelayDown(BaseOperation):
    MODE = TunnelMode.RELAY
    TRANSITION = Transition.DOWN

    kind: Literal["relay-down"] = "relay-down"

    def args(self) -> list[str]:
        return ["relay", "down"]


class AddRoute(BaseOperation):
    """Register a cloud route ``name -> localhost:port`` on ``domain``."""

    kind: Literal["add-route"] = "add-route"
    name: Name
    port: Port
    domain: str = Field(min_length=1)

    def args(self) -> list[str]:
        return ["add", self.name, str(self.port), "--domain", self.domain]


class RemoveRoute(BaseOperation):
    kind: Literal["remove-route"] = "remove-route"
    name: Name

    def args(self) -> list[str]:
        return ["remove", self.name]


class AddRelayRule(BaseOperation):
    """Register a relay rule; ``remote_port=0`` lets the server assign one."""

    kind: Literal["add-relay-rule"] = "add-relay-rule"
    name: Name
    proto: Proto = Proto.TCP
    local_port: Port
    remote_port: int = Field(default=0, ge=0, le=65535)
    domain: str | None = None

    def args(self) -> list[str]:
        args = [
            "relay",
            "add",
            self.name,
            "--proto",
            self.proto.value,
            "--local",
            str(self.local_port),
        ]
        if self.remote_port > 0:
            args += ["--remote", str(self.remote_port)]
        if self.domain:
            args += ["--domain", self.domain]
        return args


class RemoveRelayRule(BaseOperation):
    kind: Literal["remove-relay-rule"] = "remove-relay-rule"
    name: Name

    def args(self) -> list[str]:
        return ["relay", "remove", self.name]


class RelayInit(BaseOperation):
    kind: Literal["relay-init"] = "relay-init"
    server: str = Field(min_length=1)
    token: str = Field(min_length=1)

    def args(self) -> list[str]:
        return ["relay", "init", "--server", self.server, "--token", self.token]


class InstallService(BaseOperation):
    kind: Literal["install-service"] = "install-service"

    def args(self) -> list[str]:
        return ["relay", "install"]


class UninstallService(BaseOperation):
    kind: Literal["uninstall-service"] = "uninstall-service"

    def args(self) -> list[str]:
        return ["relay", "uninstall"]


class RelayServerSetup(BaseOperation):
    """Provision a relay server over SSH (performed by the CLI)."""

    kind: Literal["relay-server-setup"] = "relay-server-setup"
    host: str = Field(min_length=1)
    ssh_port: Port = 22
    user: str = Field(default="root", min_length=1)
    key_path: str | None = None
    password: str | None = None
    frps_port: Port = 7000

    def args(self) -> list[str]:
        args = [
            "relay",
            "server",
            "setup",
            "--host",
            self.host,
            "-p",
            str(self.ssh_port),
            "--user",
            self.user,
            "--frps-port",
            str(self.frps_port),
        ]
        # Password wins over key when both are given
        if self.password:
            args += ["--pass", self.password]
        elif self.key_path:
            args += ["--key", self.key_path]
        return args


# Raw argv prefixes that change a lifecycle; the escape hatch must not bypass the lock
_RAW_LIFECYCLE = {
    ("up",): (TunnelMode.CLOUD, Transition.UP),
    ("down",): (TunnelMode.CLOUD, Transition.DOWN),
    ("relay", "up"): (TunnelMode.RELAY, Transition.UP),
    ("relay", "down"): (TunnelMode.RELAY, Transition.DOWN),
}


class RawCommand(BaseOperation):
    """Free-form subcommand text, split on whitespace."""

    kind: Literal["raw"] = "raw"
    text: str = Field(min_length=1)

    def args(self) -> list[str]:
        return self.text.split()

    def _lifecycle(self) -> tuple[TunnelMode, Transition] | None:
        argv = tuple(self.args())
        return _RAW_LIFECYCLE.get(argv[:2]) or _RAW_LIFECYCLE.get(argv[:1])

    @property
    def mode(self) -> TunnelMode | None:
        lifecycle = self._lifecycle()
        return lifecycle[0] if lifecycle else None

    @property
    def transition(self) -> Transition | None:
        lifecycle = self._lifecycle()
        return lifecycle[1] if lifecycle else None


Operation = Annotated[
    Union[
        TunnelUp,
        TunnelDown,
        RelayUp,
        RelayDown,
        AddRoute,
        RemoveRoute,
        AddRelayRule,
        RemoveRelayRule,
        RelayInit,
        InstallService,
        UninstallService,
        RelayServerSetup,
        RawCommand,
    ],
    Field(discriminator="kind"),
]

_operation_adapter: TypeAdapter[Operation] = TypeAdapter(Operation)


def parse_operation(data: dict[str, Any]) -> BaseOperation:
    """Build an operation from a ``{"kind": ..., ...}`` mapping."""
    return _operation_adapter.validate_python(data)
