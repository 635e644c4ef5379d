"""State cache mirroring the cftunnel process."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .client import CftunnelClient
from .common.exceptions import CftunnelError
from .common.logging import get_logger
from .models import RelayStatus, StateSnapshot, TunnelStatus

logger = get_logger(__name__)

T = TypeVar("T")

SnapshotObserver = Callable[[StateSnapshot], None]


class StateCache:
    """Holds exactly one refresh result at a time.

    Every refresh replaces the snapshot wholesale, so readers never see a
    partially updated state.
    """

    def __init__(self, client: CftunnelClient):
        self.client = client
        self._snapshot = StateSnapshot.not_installed()
        self._observers: list[SnapshotObserver] = []
        self.refresh_count = 0

    @property
    def snapshot(self) -> StateSnapshot:
        """The last refresh result (empty and not installed before the first)."""
        return self._snapshot

    def subscribe(self, observer: SnapshotObserver) -> Callable[[], None]:
        """Call ``observer`` with every new snapshot.

        Returns:
            Function that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def _degrade(self, field: str, query: Awaitable[T], default: T) -> T:
        try:
            return await query
        except CftunnelError as e:
            logger.warning("State query failed, using default", field=field, error=str(e))
            return default

    async def refresh(self) -> StateSnapshot:
        """Query the process and replace the cached snapshot.

        When the CLI is not installed no further query is issued. Otherwise
        each field degrades to its empty value independently.
        """
        info = await self.client.check_install()
        if not info.installed:
            logger.info("cftunnel not installed, skipping state queries", detail=info.detail)
            return self._store(StateSnapshot.not_installed(info))

        tunnel_status, routes, relay_status, relay_rules = await asyncio.gather(
            self._degrade("tunnel_status", self.client.get_status(), TunnelStatus()),
            self._degrade("routes", self.client.get_routes(), []),
            self._degrade("relay_status", self.client.get_relay_status(), RelayStatus()),
            self._degrade("relay_rules", self.client.get_relay_rules(), []),
        )

        snapshot = StateSnapshot(
            installed=True,
            version=info.version,
            tunnel_status=tunnel_status,
            routes=tuple(routes),
            relay_status=relay_status,
            relay_rules=tuple(relay_rules),
        )
        logger.debug(
            "State refreshed",
            tunnel_state=tunnel_status.state.value,
            routes=len(routes),
            relay_running=relay_status.running,
            relay_rules=len(relay_rules),
        )
        return self._store(snapshot)

    def _store(self, snapshot: StateSnapshot) -> StateSnapshot:
        self._snapshot = snapshot
        self.refresh_count += 1
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as e:
                logger.error("Snapshot observer failed", error=str(e))
        return snapshot
