"""Shared pytest fixtures for control plane tests."""

import asyncio
import json

import pytest

from cftunnel_control.bridge import ControlBridge
from cftunnel_control.client import CftunnelClient
from cftunnel_control.common.exceptions import BinaryNotFoundError
from cftunnel_control.lifecycle import LifecycleRegistry
from cftunnel_control.process import CommandResult
from cftunnel_control.state import StateCache

LIFECYCLE_COMMANDS = {("up",), ("down",), ("relay", "up"), ("relay", "down")}


def _option(args: tuple[str, ...], flag: str, default: str = "") -> str:
    if flag in args:
        index = args.index(flag)
        if index + 1 < len(args):
            return args[index + 1]
    return default


class FakeCftunnel:
    """In-memory stand-in for the cftunnel CLI.

    Renders the same tables the real CLI prints and rejects duplicate or
    unknown names with a nonzero exit status.
    """

    def __init__(self) -> None:
        self.installed = True
        self.version = "cftunnel v0.7.0"
        self.cloud_running = False
        self.relay_running = False
        self.relay_pid = 4321
        self.server = "relay.example.com:7000"
        self.routes: dict[str, tuple[str, str]] = {}
        self.relay_rules: dict[str, tuple[str, int, int, str]] = {}
        self.check_json = ""
        self.failing: set[tuple[str, ...]] = set()
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, ...]] = []

    async def run(self, *args: str) -> CommandResult:
        if not self.installed:
            raise BinaryNotFoundError("cftunnel binary not found in PATH or common locations")

        self.calls.append(tuple(args))
        if self.gate is not None and tuple(args) in LIFECYCLE_COMMANDS:
            await self.gate.wait()
        if tuple(args) in self.failing:
            return CommandResult(args=args, returncode=1, output="Error: simulated failure\n")

        returncode, output = self._dispatch(tuple(args))
        return CommandResult(args=args, returncode=returncode, output=output)

    def query_calls(self) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call != ("version",)]

    def _dispatch(self, args: tuple[str, ...]) -> tuple[int, str]:
        match args:
            case ("version",):
                return 0, f"{self.version}\n"
            case ("status",):
                state = "运行中" if self.cloud_running else "已停止"
                return 0, f"隧道: demo\n状态: {state}\n"
            case ("list",):
                return 0, self._render_routes()
            case ("up",):
                self.cloud_running = True
                return 0, "隧道已启动\n"
            case ("down",):
                self.cloud_running = False
                return 0, "隧道已停止\n"
            case ("add", name, port, *rest):
                if name in self.routes:
                    return 1, f"Error: 路由 {name} 已存在\n"
                domain = _option(args, "--domain")
                self.routes[name] = (f"{name}.{domain}", f"http://localhost:{port}")
                return 0, f"路由 {name} 已添加\n"
            case ("remove", name):
                if name not in self.routes:
                    return 1, f"Error: 路由 {name} 不存在\n"
                del self.routes[name]
                return 0, f"路由 {name} 已删除\n"
            case ("relay", "status"):
                return 0, self._render_relay_status()
            case ("relay", "list"):
                return 0, self._render_relay_rules()
            case ("relay", "up"):
                self.relay_running = True
                return 0, "中继已启动\n"
            case ("relay", "down"):
                self.relay_running = False
                return 0, "中继已停止\n"
            case ("relay", "add", name, *rest):
                if name in self.relay_rules:
                    return 1, f"Error: 规则 {name} 已存在\n"
                self.relay_rules[name] = (
                    _option(args, "--proto", "tcp"),
                    int(_option(args, "--local", "0")),
                    int(_option(args, "--remote", "0")),
                    _option(args, "--domain", "-"),
                )
                return 0, f"规则 {name} 已添加\n"
            case ("relay", "remove", name):
                if name not in self.relay_rules:
                    return 1, f"Error: 规则 {name} 不存在\n"
                del self.relay_rules[name]
                return 0, f"规则 {name} 已删除\n"
            case ("relay", "check", "--json"):
                return 0, self.check_json
            case ("relay", "logs"):
                return 1, "open frpc.log: no such file or directory\n"
        return 1, f"Error: unknown command \"{' '.join(args)}\"\n"

    def _render_routes(self) -> str:
        if not self.routes:
            return "暂无路由\n"
        lines = ["名称  域名  服务"]
        for name, (hostname, service) in self.routes.items():
            lines.append(f"{name}  {hostname}  {service}")
        return "\n".join(lines) + "\n"

    def _render_relay_status(self) -> str:
        if self.relay_running:
            state = f"运行中 (PID: {self.relay_pid})"
        else:
            state = "未运行"
        return f"服务器: {self.server}\n状态: {state}\n规则数: {len(self.relay_rules)}\n"

    def _render_relay_rules(self) -> str:
        if not self.relay_rules:
            return "暂无中继规则\n"
        lines = ["名称  协议  本地端口  远程端口  域名", "-" * 40]
        for name, (proto, local, remote, domain) in self.relay_rules.items():
            remote_text = str(remote) if remote else "-"
            lines.append(f"{name}  {proto}  {local}  {remote_text}  {domain}")
        return "\n".join(lines) + "\n"


@pytest.fixture
def fake_cli():
    """Stateful fake cftunnel process.

    Returns:
        FakeCftunnel: Fresh fake with no routes or relay rules
    """
    return FakeCftunnel()


@pytest.fixture
def client(fake_cli):
    """CftunnelClient backed by the fake process."""
    return CftunnelClient(fake_cli)


@pytest.fixture
def cache(client):
    """StateCache backed by the fake process."""
    return StateCache(client)


@pytest.fixture
def bridge(client, cache):
    """ControlBridge with fresh lifecycle machines."""
    return ControlBridge(client, cache, LifecycleRegistry())


@pytest.fixture
def check_document():
    """Factory for ``relay check --json`` documents."""

    def make(**overrides):
        document = {
            "server": "relay.example.com:7000",
            "server_ok": True,
            "server_latency_ms": 35,
            "server_err": "",
            "frpc_running": True,
            "frpc_pid": 4321,
            "rules": [],
            "total": 0,
            "passed": 0,
            "failed": 0,
        }
        document.update(overrides)
        return json.dumps(document)

    return make
