"""
Snapshot Channel - latest-value holder for composite snapshots

Writers replace the held snapshot under a lock; readers take `latest`
at any time. Every publication is also forwarded to the event bus, which
delivers it to subscribers on its own thread, so slow consumers never hold
up a cycle. Delivery is most-recent-wins: a consumer that falls behind
simply reads the newest value.
"""

import asyncio
import logging
import threading
from collections.abc import Callable

from models.snapshots import CompositeSnapshot
from services.event_bus import EventBus, Events

logger = logging.getLogger(__name__)


class SnapshotChannel:
    def __init__(self, event_bus: EventBus | None = None):
        self._lock = threading.Lock()
        self._latest: CompositeSnapshot | None = None
        self._version = 0
        self._event_bus = event_bus

    @property
    def latest(self) -> CompositeSnapshot | None:
        with self._lock:
            return self._latest

    @property
    def version(self) -> int:
        """Number of publications so far."""
        with self._lock:
            return self._version

    def update(
        self, build: Callable[[CompositeSnapshot | None], CompositeSnapshot]
    ) -> CompositeSnapshot:
        """
        Derive and publish a new snapshot from the current one.

        `build` runs under the channel lock, so concurrent cycles merge
        against each other's results instead of overwriting them.
        """
        with self._lock:
            snapshot = build(self._latest)
            self._latest = snapshot
            self._version += 1

        if self._event_bus is not None:
            self._event_bus.publish(Events.SNAPSHOT_PUBLISHED, snapshot)
        return snapshot

    def publish(self, snapshot: CompositeSnapshot) -> CompositeSnapshot:
        return self.update(lambda _previous: snapshot)

    def subscribe(self, callback: Callable[[dict], None]):
        """Receive {"name": ..., "data": CompositeSnapshot} for every publication."""
        if self._event_bus is None:
            raise RuntimeError("SnapshotChannel has no event bus to subscribe to")
        self._event_bus.subscribe(Events.SNAPSHOT_PUBLISHED, callback, weak=False)

    async def wait_for_update(
        self, after_version: int, timeout: float = 10.0, poll_interval: float = 0.01
    ) -> CompositeSnapshot | None:
        """Wait until a snapshot newer than `after_version` is published."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.version <= after_version:
            if loop.time() >= deadline:
                return None
            await asyncio.sleep(poll_interval)
        return self.latest
