"""
Event Bus Service - queue backed, dispatches on its own thread

Key behaviors:
- publish() never blocks the producer; a full queue drops the event
- No locks held during callback execution
- Callback exceptions are logged and counted, never re-raised
- Weak references by default so subscribers can be collected
"""

import logging
import queue
import threading
import weakref
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class Events(Enum):
    """Engine notifications"""

    SNAPSHOT_PUBLISHED = "snapshot.published"
    CYCLE_COMPLETED = "cycle.completed"
    TIER_SKIPPED = "tier.skipped"
    SESSION_STARTED = "session.started"
    SESSION_ENDED = "session.ended"
    ENGINE_STARTED = "engine.started"
    ENGINE_STOPPED = "engine.stopped"
    ENGINE_FATAL = "engine.fatal"


class EventBus:
    """Thread-safe publish/subscribe with asynchronous delivery."""

    def __init__(self, max_queue_size: int = 1000):
        self._subscribers: dict[Events, list[tuple[int, Any]]] = {}
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._sub_lock = threading.RLock()
        self._processing = False
        self._thread: threading.Thread | None = None

        self._stats = {
            "events_published": 0,
            "events_processed": 0,
            "events_dropped": 0,
            "errors": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._processing

    def start(self):
        """Start the dispatch thread"""
        if self._processing:
            return
        self._processing = True
        self._thread = threading.Thread(target=self._process_events, name="event-bus", daemon=True)
        self._thread.start()
        logger.debug("EventBus started")

    def stop(self, timeout: float = 2.0):
        """Deliver what is queued, then stop the dispatch thread."""
        if not self._processing:
            return
        try:
            self._queue.put(None, timeout=timeout)
        except queue.Full:
            logger.warning("EventBus queue full on shutdown, pending events discarded")
            self._processing = False

        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.error("EventBus thread did not stop within timeout")
        self._processing = False
        self._thread = None
        logger.debug("EventBus stopped")

    def subscribe(self, event: Events, callback: Callable[[dict], None], weak: bool = True):
        """
        Subscribe to an event.

        Callbacks receive {"name": event.value, "data": data}. Bound methods
        are held weakly unless weak=False; plain functions and lambdas are
        always held strongly.
        """
        with self._sub_lock:
            entries = self._subscribers.setdefault(event, [])
            cb_id = id(callback)
            if any(cid == cb_id and self._resolve(ref) is not None for cid, ref in entries):
                return
            ref: Any = callback
            if weak and hasattr(callback, "__self__"):
                ref = weakref.WeakMethod(callback)
            entries.append((cb_id, ref))

    def unsubscribe(self, event: Events, callback: Callable):
        with self._sub_lock:
            cb_id = id(callback)
            entries = [(cid, ref) for cid, ref in self._subscribers.get(event, []) if cid != cb_id]
            if entries:
                self._subscribers[event] = entries
            else:
                self._subscribers.pop(event, None)

    def publish(self, event: Events, data: Any = None):
        """Queue an event for delivery."""
        try:
            self._queue.put_nowait((event, data))
            self._stats["events_published"] += 1
        except queue.Full:
            self._stats["events_dropped"] += 1
            logger.warning(f"Event queue full, dropping event: {event.value}")

    def _process_events(self):
        while self._processing:
            try:
                item = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            if item is None:
                break
            event, data = item
            self._dispatch(event, data)

    def _dispatch(self, event: Events, data: Any):
        with self._sub_lock:
            entries = self._subscribers.get(event, [])
            alive = [(cid, ref) for cid, ref in entries if self._resolve(ref) is not None]
            if entries:
                self._subscribers[event] = alive
            callbacks = [self._resolve(ref) for _, ref in alive]

        for callback in callbacks:
            if callback is None:
                continue
            try:
                callback({"name": event.value, "data": data})
                self._stats["events_processed"] += 1
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(f"Error in callback for {event.value}: {e}", exc_info=True)

    @staticmethod
    def _resolve(ref):
        if isinstance(ref, weakref.WeakMethod):
            return ref()
        return ref

    def has_subscribers(self, event: Events) -> bool:
        with self._sub_lock:
            return any(self._resolve(ref) is not None for _, ref in self._subscribers.get(event, []))

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics"""
        with self._sub_lock:
            stats = {
                "subscriber_count": sum(len(e) for e in self._subscribers.values()),
                "queue_size": self._queue.qsize(),
                "processing": self._processing,
            }
            stats.update(self._stats)
            return stats

    def clear_all(self):
        with self._sub_lock:
            self._subscribers.clear()
