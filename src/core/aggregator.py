"""
Aggregator - runs one tier's collectors and publishes the merged result

Per cycle:
1. Run every assigned collector concurrently and wait for all of them
2. Optionally feed the fresh player snapshot to the session hook
3. Merge the results over the latest published snapshot (each domain is
   owned by one collector, so fields never conflict)
4. Publish through the SnapshotChannel

Status rule: ERROR only when every collector of the cycle failed.
Otherwise OFFLINE when the latest good player snapshot says so, ONLINE
in all remaining cases. Anything unexpected inside a cycle is caught and
published as an ERROR snapshot so the scheduler keeps running.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime

from core.snapshot_channel import SnapshotChannel
from models.enums import SnapshotStatus, Tier
from models.session_record import SessionRecord
from models.snapshots import CompositeSnapshot, DomainSnapshot, PlayerSnapshot, utcnow
from services.event_bus import EventBus, Events
from sources.domain_collector import CollectContext, DomainCollector

logger = logging.getLogger(__name__)

SessionHook = Callable[[PlayerSnapshot], SessionRecord]


class Aggregator:
    def __init__(self, channel: SnapshotChannel, event_bus: EventBus | None = None):
        self.channel = channel
        self.event_bus = event_bus
        self.cycles_run = 0
        self.cycles_errored = 0

    async def run_cycle(
        self,
        tier: Tier,
        collectors: Sequence[DomainCollector],
        context: CollectContext,
        session_hook: SessionHook | None = None,
    ) -> CompositeSnapshot:
        """Execute one cycle; returns the snapshot it published."""
        started = time.monotonic()
        self.cycles_run += 1
        try:
            results = await self.collect_all(collectors, context)

            session = None
            if session_hook is not None:
                player = next((r for r in results if isinstance(r, PlayerSnapshot)), None)
                if player is not None:
                    session = session_hook(player)

            composite = self.channel.update(
                lambda previous: self.merge(
                    previous, tier, context.cycle, results, session, context.captured_at
                )
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.cycles_errored += 1
            logger.error(f"{tier.value} cycle {context.cycle} failed: {e}", exc_info=True)
            composite = self.publish_error(f"Cycle error: {e}", tier=tier, cycle=context.cycle)

        duration_ms = (time.monotonic() - started) * 1000
        failed = len(composite.failed_domains) if not composite.is_error else len(collectors)
        logger.info(
            f"{tier.value} cycle {context.cycle}: {composite.status.value} "
            f"({len(collectors) - failed}/{len(collectors)} ok, {duration_ms:.0f}ms)",
            extra={
                "tier": tier.value,
                "cycle": context.cycle,
                "ok": len(collectors) - failed,
                "failed": failed,
                "duration_ms": round(duration_ms, 1),
            },
        )
        if self.event_bus is not None:
            self.event_bus.publish(
                Events.CYCLE_COMPLETED,
                {"tier": tier.value, "cycle": context.cycle, "status": composite.status.value},
            )
        return composite

    async def collect_all(
        self, collectors: Sequence[DomainCollector], context: CollectContext
    ) -> list[DomainSnapshot]:
        """Run collectors concurrently; a collector that raises is recorded as failed."""
        outputs = await asyncio.gather(
            *(collector.collect(context) for collector in collectors), return_exceptions=True
        )

        results: list[DomainSnapshot] = []
        for collector, output in zip(collectors, outputs):
            if isinstance(output, DomainSnapshot):
                results.append(output)
            elif isinstance(output, Exception):
                logger.error(f"{collector.name} collector raised: {output!r}")
                results.append(
                    collector.snapshot_type.failed(
                        f"Unexpected error: {output}", context.captured_at
                    )
                )
            else:
                # CancelledError and other BaseExceptions
                raise output
        return results

    @staticmethod
    def merge(
        previous: CompositeSnapshot | None,
        tier: Tier,
        cycle: int,
        results: Sequence[DomainSnapshot],
        session: SessionRecord | None = None,
        now: datetime | None = None,
    ) -> CompositeSnapshot:
        base = previous or CompositeSnapshot.empty()
        fields = CompositeSnapshot.domain_fields(list(results))
        player = fields.get("player", base.player)

        failed = [r for r in results if r.has_error]
        return base.evolve(
            **fields,
            status=Aggregator.compute_status(results, player),
            details=Aggregator.describe(tier, results),
            timestamp=now or utcnow(),
            tier=tier,
            cycle=cycle,
            session=session if session is not None else base.session,
            failed_domains=tuple(r.domain for r in failed),
            fatal=any(r.is_fatal for r in results),
        )

    @staticmethod
    def compute_status(
        results: Sequence[DomainSnapshot], player: PlayerSnapshot | None
    ) -> SnapshotStatus:
        if results and all(r.has_error for r in results):
            return SnapshotStatus.ERROR
        if player is not None and not player.has_error and not player.is_online:
            return SnapshotStatus.OFFLINE
        return SnapshotStatus.ONLINE

    @staticmethod
    def describe(tier: Tier, results: Sequence[DomainSnapshot]) -> str:
        ok = sum(1 for r in results if not r.has_error)
        parts = [f"{tier.value.capitalize()} cycle: {ok}/{len(results)} domains ok"]
        parts.extend(r.summary() for r in results)
        return " | ".join(parts)

    def publish_error(
        self, message: str, tier: Tier | None = None, cycle: int = 0, fatal: bool = False
    ) -> CompositeSnapshot:
        """Publish an ERROR snapshot that keeps the last known domain data."""

        def build(previous: CompositeSnapshot | None) -> CompositeSnapshot:
            base = previous or CompositeSnapshot.empty()
            return base.evolve(
                status=SnapshotStatus.ERROR,
                details=message,
                timestamp=utcnow(),
                tier=tier,
                cycle=cycle,
                fatal=base.fatal or fatal,
            )

        return self.channel.update(build)

    def publish_session(self, session: SessionRecord) -> CompositeSnapshot:
        """Republish the latest snapshot with a new session record, e.g. after close."""

        def build(previous: CompositeSnapshot | None) -> CompositeSnapshot:
            base = previous or CompositeSnapshot.empty()
            return base.evolve(session=session, timestamp=utcnow())

        return self.channel.update(build)
