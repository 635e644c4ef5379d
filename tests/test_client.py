"""Tests for CftunnelClient."""

from unittest.mock import AsyncMock, Mock

import pytest

from cftunnel_control.client import NO_LOGS_PLACEHOLDER, CftunnelClient
from cftunnel_control.common.exceptions import ParseError, ProcessError
from cftunnel_control.models import RunState
from cftunnel_control.process import CommandResult


class TestCheckInstall:
    """Test installation detection."""

    @pytest.mark.asyncio
    async def test_installed(self, client):
        """Version output is trimmed."""
        info = await client.check_install()

        assert info.installed
        assert info.version == "cftunnel v0.7.0"

    @pytest.mark.asyncio
    async def test_binary_missing(self, client, fake_cli):
        """A missing binary is reported, not raised."""
        fake_cli.installed = False

        info = await client.check_install()

        assert not info.installed
        assert "not found" in info.detail

    @pytest.mark.asyncio
    async def test_version_fails(self, client, fake_cli):
        """A failing version command means not installed."""
        fake_cli.failing.add(("version",))

        info = await client.check_install()

        assert not info.installed
        assert "exit status 1" in info.detail

    @pytest.mark.asyncio
    async def test_process_error(self):
        """Timeouts are reported, not raised."""
        runner = Mock()
        runner.run = AsyncMock(side_effect=ProcessError("cftunnel version timed out"))

        info = await CftunnelClient(runner).check_install()

        assert not info.installed
        assert "timed out" in info.detail


class TestQueries:
    """Test typed queries."""

    @pytest.mark.asyncio
    async def test_status(self, client, fake_cli):
        """Status text is classified."""
        assert (await client.get_status()).state == RunState.STOPPED

        fake_cli.cloud_running = True
        status = await client.get_status()
        assert status.state == RunState.RUNNING
        assert "demo" in status.text

    @pytest.mark.asyncio
    async def test_routes(self, client, fake_cli):
        """Routes are parsed from the table."""
        assert await client.get_routes() == []

        fake_cli.routes["web"] = ("web.example.com", "http://localhost:3000")
        routes = await client.get_routes()

        assert len(routes) == 1
        assert routes[0].hostname == "web.example.com"

    @pytest.mark.asyncio
    async def test_relay_status_and_rules(self, client, fake_cli):
        """Relay status and rules are parsed."""
        fake_cli.relay_running = True
        fake_cli.relay_rules["ssh"] = ("tcp", 22, 6022, "-")

        status = await client.get_relay_status()
        rules = await client.get_relay_rules()

        assert status.running
        assert status.pid_number == 4321
        assert status.rules == 1
        assert [(r.name, r.local_port, r.remote_port) for r in rules] == [("ssh", 22, 6022)]

    @pytest.mark.asyncio
    async def test_failed_query_raises(self, client, fake_cli):
        """Nonzero exit of a query raises ProcessError."""
        fake_cli.failing.add(("list",))

        with pytest.raises(ProcessError, match="exited with 1"):
            await client.get_routes()

    @pytest.mark.asyncio
    async def test_run_passes_through(self, client, fake_cli):
        """Arbitrary subcommands return the raw result."""
        result = await client.run(["bogus"])

        assert not result.ok
        assert "unknown command" in result.text
        assert fake_cli.calls[-1] == ("bogus",)


class TestRelayCheck:
    """Test the CLI's own link check."""

    @pytest.mark.asyncio
    async def test_parsed(self, client, fake_cli, check_document):
        """The JSON report is parsed."""
        fake_cli.check_json = check_document(
            rules=[{"name": "ssh", "local_port": 22, "local_ok": True}]
        )

        result = await client.relay_check()

        assert result.total == 1
        assert result.passed == 1

    @pytest.mark.asyncio
    async def test_invalid_json(self, client, fake_cli):
        """Invalid JSON raises ParseError."""
        fake_cli.check_json = "relay not initialized"

        with pytest.raises(ParseError):
            await client.relay_check()


class TestRelayLogs:
    """Test relay log retrieval."""

    @pytest.mark.asyncio
    async def test_placeholder_on_failure(self, client):
        """Failure shows the placeholder followed by the CLI output."""
        logs = await client.relay_logs()

        assert logs.startswith(NO_LOGS_PLACEHOLDER)
        assert "no such file" in logs

    @pytest.mark.asyncio
    async def test_logs(self):
        """Successful output is returned trimmed."""
        runner = Mock()
        runner.run = AsyncMock(
            return_value=CommandResult(args=("relay", "logs"), output="line1\nline2\n")
        )

        assert await CftunnelClient(runner).relay_logs() == "line1\nline2"
