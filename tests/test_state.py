"""Tests for StateCache."""

from unittest.mock import AsyncMock, Mock

import pytest

from cftunnel_control.client import CftunnelClient
from cftunnel_control.common.exceptions import ProcessError
from cftunnel_control.models import InstallationInfo, RunState
from cftunnel_control.state import StateCache


class TestStateCache:
    """Test refresh semantics."""

    def test_initial_snapshot(self, cache):
        """Before the first refresh the cache is empty and not installed."""
        snapshot = cache.snapshot

        assert not snapshot.installed
        assert snapshot.routes == ()
        assert cache.refresh_count == 0

    @pytest.mark.asyncio
    async def test_refresh_installed(self, cache, fake_cli):
        """All fields are populated from the process."""
        fake_cli.cloud_running = True
        fake_cli.relay_running = True
        fake_cli.routes["web"] = ("web.example.com", "http://localhost:3000")
        fake_cli.relay_rules["ssh"] = ("tcp", 22, 6022, "-")

        snapshot = await cache.refresh()

        assert snapshot.installed
        assert snapshot.version == "cftunnel v0.7.0"
        assert snapshot.tunnel_status.state == RunState.RUNNING
        assert [r.name for r in snapshot.routes] == ["web"]
        assert snapshot.relay_status.running
        assert [r.name for r in snapshot.relay_rules] == ["ssh"]
        assert cache.snapshot is snapshot

    @pytest.mark.asyncio
    async def test_not_installed_issues_no_queries(self, cache, fake_cli):
        """Only the installation probe runs when the CLI is missing."""
        fake_cli.installed = False

        snapshot = await cache.refresh()

        assert not snapshot.installed
        assert "not found" in snapshot.detail
        assert fake_cli.calls == []
        assert snapshot.routes == ()
        assert snapshot.relay_rules == ()

    @pytest.mark.asyncio
    async def test_version_failure_issues_no_queries(self, cache, fake_cli):
        """A failing version command also stops the refresh."""
        fake_cli.failing.add(("version",))

        await cache.refresh()

        assert fake_cli.query_calls() == []

    @pytest.mark.asyncio
    async def test_fields_degrade_independently(self, cache, fake_cli):
        """One failing query empties only its own field."""
        fake_cli.routes["web"] = ("web.example.com", "http://localhost:3000")
        fake_cli.relay_rules["ssh"] = ("tcp", 22, 0, "-")
        fake_cli.failing.add(("list",))

        snapshot = await cache.refresh()

        assert snapshot.installed
        assert snapshot.routes == ()
        assert len(snapshot.relay_rules) == 1

    @pytest.mark.asyncio
    async def test_snapshot_replaced_wholesale(self, cache, fake_cli):
        """Old snapshots are not mutated by later refreshes."""
        fake_cli.routes["web"] = ("web.example.com", "http://localhost:3000")
        first = await cache.refresh()

        fake_cli.routes.clear()
        second = await cache.refresh()

        assert len(first.routes) == 1
        assert second.routes == ()
        assert cache.refresh_count == 2

    @pytest.mark.asyncio
    async def test_observers(self, cache):
        """Observers see every new snapshot until they unsubscribe."""
        seen = []
        unsubscribe = cache.subscribe(seen.append)

        await cache.refresh()
        unsubscribe()
        await cache.refresh()

        assert len(seen) == 1
        assert seen[0].installed

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_break_refresh(self, cache):
        """Observer errors are contained."""
        good = Mock()
        cache.subscribe(Mock(side_effect=RuntimeError("boom")))
        cache.subscribe(good)

        snapshot = await cache.refresh()

        good.assert_called_once_with(snapshot)

    @pytest.mark.asyncio
    async def test_all_queries_failing(self):
        """An installed CLI whose queries all fail yields empty fields."""
        client = Mock(spec=CftunnelClient)
        client.check_install = AsyncMock(
            return_value=InstallationInfo(installed=True, version="v1")
        )
        for name in ("get_status", "get_routes", "get_relay_status", "get_relay_rules"):
            setattr(client, name, AsyncMock(side_effect=ProcessError("failed")))

        snapshot = await StateCache(client).refresh()

        assert snapshot.installed
        assert snapshot.tunnel_status.state == RunState.UNKNOWN
        assert snapshot.routes == ()
        assert not snapshot.relay_status.running
        assert snapshot.relay_rules == ()
