"""Typed access to the cftunnel command boundary."""

from collections.abc import Sequence

from .common.exceptions import BinaryNotFoundError, ProcessError
from .common.logging import get_logger
from .models import InstallationInfo, LinkCheckResult, RelayRule, RelayStatus, Route, TunnelStatus
from .parsing import (
    classify_tunnel_status,
    parse_check_json,
    parse_relay_rules,
    parse_relay_status,
    parse_routes,
)
from .process import CommandResult, CommandRunner

logger = get_logger(__name__)

NO_LOGS_PLACEHOLDER = "No logs yet"


class CftunnelClient:
    """One method per logical operation of the external process.

    Query methods raise :class:`ProcessError` when the process cannot be
    run or exits nonzero; callers decide how to degrade.
    """

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    async def run(self, args: Sequence[str]) -> CommandResult:
        """Run an arbitrary subcommand and return its raw result."""
        return await self.runner.run(*args)

    async def _query(self, *args: str) -> str:
        result = await self.runner.run(*args)
        if not result.ok:
            raise ProcessError(
                f"cftunnel {' '.join(args)} exited with {result.returncode}: {result.text}"
            )
        return result.output

    async def check_install(self) -> InstallationInfo:
        """Probe whether the CLI is installed. Never raises."""
        try:
            result = await self.runner.run("version")
        except BinaryNotFoundError as e:
            logger.info("cftunnel not installed", reason=str(e))
            return InstallationInfo(installed=False, detail=str(e))
        except ProcessError as e:
            logger.warning("cftunnel version check failed", error=str(e))
            return InstallationInfo(installed=False, detail=str(e))

        if not result.ok:
            return InstallationInfo(
                installed=False,
                detail=f"Exec error: exit status {result.returncode}, Output: {result.text}",
            )
        return InstallationInfo(installed=True, version=result.text)

    async def get_status(self) -> TunnelStatus:
        return classify_tunnel_status(await self._query("status"))

    async def get_routes(self) -> list[Route]:
        return parse_routes(await self._query("list"))

    async def get_relay_status(self) -> RelayStatus:
        return parse_relay_status(await self._query("relay", "status"))

    async def get_relay_rules(self) -> list[RelayRule]:
        return parse_relay_rules(await self._query("relay", "list"))

    async def relay_check(self) -> LinkCheckResult:
        """Run the CLI's own link check.

        Raises:
            ProcessError: If the command fails
            ParseError: If the JSON document is invalid
        """
        return parse_check_json(await self._query("relay", "check", "--json"))

    async def relay_logs(self) -> str:
        """Return relay client logs, or a placeholder when none are available."""
        result = await self.runner.run("relay", "logs")
        if not result.ok:
            return f"{NO_LOGS_PLACEHOLDER}\n{result.text}".rstrip()
        return result.text
