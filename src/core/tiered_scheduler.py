"""
Tiered Scheduler

Drives the fast, medium and slow collection tiers.

Tier loop (one asyncio task per tier):
    IDLE -> RUNNING -> IDLE -> ... until stopped

- Each tier first waits for its phase offset so tiers do not fire together
- A tier is a single-shot task that reschedules itself after each cycle.
  Ticks that come due while a cycle is still running are skipped, not
  queued: the next cycle starts at the first tick on the tier's grid
  after the running one finishes.
- Only the fast tier updates the session tracker
- start() runs one credential check first; a fatal answer aborts startup
- A fatal outcome during any cycle halts every tier and publishes an
  ERROR snapshot
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.aggregator import Aggregator
from core.session_tracker import SessionTracker
from models.api_responses import PlayerSummariesResponse
from models.enums import Tier
from models.session_record import SessionRecord
from models.snapshots import PlayerSnapshot, utcnow
from services.event_bus import EventBus, Events
from sources.domain_collector import CollectContext, DomainCollector
from sources.rate_limited_client import FatalApiError
from sources.steam_api import SteamApi

logger = logging.getLogger(__name__)


class TierState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class TierSpec:
    """Static configuration of one tier."""

    tier: Tier
    interval: float
    offset: float = 0.0
    collectors: list[DomainCollector] = field(default_factory=list)


@dataclass
class TierRuntime:
    spec: TierSpec
    state: TierState = TierState.STOPPED
    ticks_run: int = 0
    ticks_skipped: int = 0
    last_duration: float | None = None
    task: asyncio.Task | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "interval": self.spec.interval,
            "offset": self.spec.offset,
            "collectors": [c.name for c in self.spec.collectors],
            "ticks_run": self.ticks_run,
            "ticks_skipped": self.ticks_skipped,
            "last_duration": self.last_duration,
        }


def next_tick(previous_tick: float, interval: float, now: float) -> tuple[float, int]:
    """
    First tick on the grid after `now`.

    Returns:
        (tick time, number of ticks skipped in between)
    """
    tick = previous_tick + interval
    skipped = 0
    while tick < now:
        tick += interval
        skipped += 1
    return tick, skipped


class TieredScheduler:
    """
    Usage:
        scheduler = TieredScheduler(api, aggregator, tiers, session_tracker=tracker)
        await scheduler.start()   # raises FatalApiError on a rejected credential
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        api: SteamApi,
        aggregator: Aggregator,
        tiers: Sequence[TierSpec],
        session_tracker: SessionTracker | None = None,
        event_bus: EventBus | None = None,
        stop_timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api
        self.aggregator = aggregator
        self.session_tracker = session_tracker
        self.event_bus = event_bus
        self.stop_timeout = stop_timeout
        self._clock = clock

        self._tiers = [TierRuntime(spec) for spec in tiers if spec.collectors]
        self._running = False
        self._starting = False
        self._started = False
        self._cycle = 0
        self._fatal_error: str | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def fatal_error(self) -> str | None:
        return self._fatal_error

    @property
    def tiers(self) -> list[TierRuntime]:
        return list(self._tiers)

    # ========== Lifecycle ==========

    async def start(self) -> None:
        """Check the credential, then start every tier. No-op when already running."""
        if self._running or self._starting:
            logger.debug("Scheduler already running, start ignored")
            return

        if self._started:
            # halted after a fatal outcome; clear the old tier tasks first
            await self.stop()

        self._starting = True
        try:
            await self.check_connectivity()
        finally:
            self._starting = False

        self._running = True
        self._started = True
        self._fatal_error = None
        anchor = self._clock()
        for runtime in self._tiers:
            runtime.state = TierState.IDLE
            runtime.task = asyncio.create_task(
                self._run_tier(runtime, anchor), name=f"tier-{runtime.spec.tier.value}"
            )

        logger.info(
            "Scheduler started: "
            + ", ".join(
                f"{r.spec.tier.value} every {r.spec.interval:g}s (+{r.spec.offset:g}s)"
                for r in self._tiers
            )
        )
        self._emit(Events.ENGINE_STARTED, {"tiers": [r.spec.tier.value for r in self._tiers]})

    async def stop(self) -> None:
        """
        Cancel every tier and wait, up to stop_timeout, for them to unwind.

        An open session is closed and the closed record is published as the
        final snapshot.
        """
        if not self._started:
            return

        tasks = [r.task for r in self._tiers if r.task is not None and not r.task.done()]

        self._running = False
        for task in tasks:
            task.cancel()
        if tasks:
            _done, pending = await asyncio.wait(tasks, timeout=self.stop_timeout)
            if pending:
                logger.warning(f"{len(pending)} tier task(s) still unwinding after stop timeout")

        for runtime in self._tiers:
            runtime.task = None
            runtime.state = TierState.STOPPED

        if self.session_tracker is not None and self.session_tracker.is_active:
            record = self.session_tracker.close(utcnow())
            self.aggregator.publish_session(record)

        self._started = False
        logger.info("Scheduler stopped")
        self._emit(Events.ENGINE_STOPPED, {"fatal_error": self._fatal_error})

    async def check_connectivity(self) -> None:
        """
        One call to validate the credential and account before any tier runs.

        Raises:
            FatalApiError: credential rejected, or the account does not exist
        """
        outcome = await self.api.player_summaries([self.api.steam_id])
        if outcome.is_fatal:
            raise FatalApiError(f"Credential check failed: {outcome.describe()}")
        if not outcome.ok:
            logger.warning(f"Connectivity check failed ({outcome.describe()}), starting anyway")
            return

        try:
            players = PlayerSummariesResponse.model_validate_json(outcome.body).response.players
        except ValueError as e:
            logger.warning(f"Connectivity check returned an unreadable body: {e}")
            return
        if not players:
            raise FatalApiError(f"Steam ID {self.api.steam_id} did not resolve to a player")
        logger.info(f"Connected to Steam API as {players[0].personaname or players[0].steamid}")

    # ========== Tier loop ==========

    async def _run_tier(self, runtime: TierRuntime, anchor: float) -> None:
        spec = runtime.spec
        try:
            tick = anchor + spec.offset
            await self._sleep_until(tick)

            while self._running:
                runtime.state = TierState.RUNNING
                await self._run_cycle(runtime)
                runtime.state = TierState.IDLE
                if not self._running:
                    break

                tick, skipped = next_tick(tick, spec.interval, self._clock())
                if skipped:
                    runtime.ticks_skipped += skipped
                    logger.info(
                        f"{spec.tier.value} tier overran its interval, skipped {skipped} tick(s)",
                        extra={"tier": spec.tier.value, "skipped": skipped},
                    )
                    self._emit(Events.TIER_SKIPPED, {"tier": spec.tier.value, "skipped": skipped})
                await self._sleep_until(tick)
        finally:
            runtime.state = TierState.STOPPED

    async def _run_cycle(self, runtime: TierRuntime) -> None:
        spec = runtime.spec
        self._cycle += 1
        context = CollectContext(
            tier=spec.tier,
            cycle=self._cycle,
            now=utcnow(),
            latest=self.aggregator.channel.latest,
        )
        hook = self._update_session if spec.tier == Tier.FAST and self.session_tracker else None

        logger.debug(f"{spec.tier.value} tick (cycle {self._cycle})", extra={"tier": spec.tier.value})
        started = self._clock()
        composite = await self.aggregator.run_cycle(spec.tier, spec.collectors, context, hook)
        runtime.last_duration = self._clock() - started
        runtime.ticks_run += 1

        if composite.fatal and self._fatal_error is None:
            self._halt(runtime, composite.details)

    def _update_session(self, player: PlayerSnapshot) -> SessionRecord:
        return self.session_tracker.update(player)

    def _halt(self, current: TierRuntime, details: str) -> None:
        """Stop every tier after a fatal outcome. The calling tier exits on its own."""
        self._fatal_error = details
        self._running = False
        for runtime in self._tiers:
            if runtime is not current and runtime.task is not None:
                runtime.task.cancel()

        message = f"Credential rejected, monitoring halted: {details}"
        logger.critical(message)
        self.aggregator.publish_error(message, tier=current.spec.tier, cycle=self._cycle, fatal=True)
        self._emit(Events.ENGINE_FATAL, {"error": details})

    async def _sleep_until(self, deadline: float) -> None:
        delay = deadline - self._clock()
        if delay > 0:
            await asyncio.sleep(delay)

    def _emit(self, event: Events, data: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event, data)

    def get_status(self) -> dict[str, Any]:
        """Scheduler status for logging and diagnostics."""
        return {
            "running": self._running,
            "cycles": self._cycle,
            "fatal_error": self._fatal_error,
            "tiers": {r.spec.tier.value: r.to_dict() for r in self._tiers},
            "client": self.api.client.get_stats(),
        }
