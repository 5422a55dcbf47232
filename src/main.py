"""
Steam Tier Monitor - entry point

Wires the engine together and runs it until interrupted:

    RateBudget -> RateLimitedClient -> SteamApi -> collectors
    collectors -> TierSpecs -> TieredScheduler -> Aggregator -> SnapshotChannel -> EventBus

Usage:
    python src/main.py --config monitor.yaml
    python src/main.py --init-config monitor.yaml
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from config import ConfigError, MonitorConfig, load_config, write_default_config
from core.aggregator import Aggregator
from core.session_tracker import SessionTracker
from core.snapshot_channel import SnapshotChannel
from core.tiered_scheduler import TieredScheduler, TierSpec
from models.enums import Tier
from models.snapshots import CompositeSnapshot
from services.event_bus import EventBus, Events
from services.logger import cleanup_logging, setup_logging
from sources.achievements_collector import AchievementsCollector
from sources.domain_collector import DomainCollector
from sources.http_transport import HttpTransport
from sources.library_collector import LibraryCollector
from sources.player_collector import PlayerCollector
from sources.rate_budget import RateBudget
from sources.rate_limited_client import FatalApiError, RateLimitedClient, Transport
from sources.social_collector import SocialCollector
from sources.steam_api import SteamApi

logger = logging.getLogger(__name__)


def build_tiers(config: MonitorConfig, api: SteamApi) -> list[TierSpec]:
    """Create the enabled collectors and assign them to tiers."""
    fast: list[DomainCollector] = []
    medium: list[DomainCollector] = []
    slow: list[DomainCollector] = []

    if config.enable_player:
        fast.append(PlayerCollector(api))
    if config.enable_social:
        medium.append(
            SocialCollector(
                api,
                max_friends=config.max_friends_enriched,
                mode=config.friend_enrichment,
                pacing_seconds=config.friend_pacing,
            )
        )
    if config.enable_library:
        slow.append(
            LibraryCollector(
                api,
                include_recent=config.enable_recent_games,
                max_recent_games=config.max_recent_games,
            )
        )
    if config.enable_achievements:
        slow.append(
            AchievementsCollector(
                api, include_current_game=config.enable_current_game_achievements
            )
        )

    fast_offset, medium_offset, slow_offset = config.tier_offsets
    return [
        TierSpec(Tier.FAST, config.fast_interval_seconds, fast_offset, fast),
        TierSpec(Tier.MEDIUM, config.medium_interval_seconds, medium_offset, medium),
        TierSpec(Tier.SLOW, config.slow_interval_seconds, slow_offset, slow),
    ]


class MonitorRunner:
    """
    Owns one engine instance: client, scheduler, channel and event bus.

    Usage:
        runner = MonitorRunner(load_config())
        await runner.run()  # Runs until interrupted
    """

    def __init__(
        self,
        config: MonitorConfig,
        transport: Transport | None = None,
        event_bus: EventBus | None = None,
    ):
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.channel = SnapshotChannel(self.event_bus)
        self.session_tracker = SessionTracker()
        self._transport = transport
        self._stop_event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._build()

        self.session_tracker.on_session_started = lambda record: self.event_bus.publish(
            Events.SESSION_STARTED, record
        )
        self.session_tracker.on_session_ended = lambda record: self.event_bus.publish(
            Events.SESSION_ENDED, record
        )

    def _build(self):
        config = self.config
        self.budget = RateBudget(config.min_request_interval)
        self.client = RateLimitedClient(
            config.api_base_url,
            config.api_key,
            self.budget,
            transport=self._transport or HttpTransport(config.user_agent),
            timeout=config.request_timeout_seconds,
            backoff_base=config.backoff_base,
            backoff_max=config.backoff_max,
        )
        self.api = SteamApi(self.client, config.steam_id64)
        self.aggregator = Aggregator(self.channel, self.event_bus)
        self.scheduler = TieredScheduler(
            self.api,
            self.aggregator,
            build_tiers(config, self.api),
            session_tracker=self.session_tracker,
            event_bus=self.event_bus,
            stop_timeout=config.stop_timeout_seconds,
        )

    @property
    def latest(self) -> CompositeSnapshot | None:
        return self.channel.latest

    async def start(self) -> None:
        """Start the event bus and the scheduler. Raises FatalApiError."""
        self.event_bus.start()
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.client.close()
        self.event_bus.stop()
        if self._stop_event is not None:
            self._stop_event.set()

    async def reload(self, config: MonitorConfig) -> None:
        """Apply a new configuration by rebuilding the engine behind the same channel."""
        was_running = self.scheduler.is_running
        await self.scheduler.stop()
        await self.client.close()

        self.config = config
        self._build()
        logger.info("Configuration reloaded")
        if was_running:
            await self.scheduler.start()

    async def run(self) -> None:
        """Run until SIGINT/SIGTERM or a fatal credential error."""
        self._stop_event = asyncio.Event()
        self._loop = loop = asyncio.get_running_loop()
        self.event_bus.subscribe(Events.ENGINE_FATAL, self._on_fatal, weak=False)

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._stop_event.set)
            except NotImplementedError:
                # Windows event loops
                pass

        try:
            await self.start()
            logger.info("Monitor running. Press Ctrl+C to stop.")
            await self._stop_event.wait()
        finally:
            await self.stop()

    def _on_fatal(self, event: dict) -> None:
        # Called on the event bus thread
        if self._loop is not None and self._stop_event is not None:
            self._loop.call_soon_threadsafe(self._stop_event.set)

    def get_status(self) -> dict[str, Any]:
        return {
            "scheduler": self.scheduler.get_status(),
            "event_bus": self.event_bus.get_stats(),
            "session": self.session_tracker.current().to_dict(),
            "snapshot_version": self.channel.version,
        }


def _log_snapshot(event: dict) -> None:
    snapshot: CompositeSnapshot = event["data"]
    logger.info(f"[{snapshot.status.value}] {snapshot.details}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Tiered Steam Web API monitor")
    parser.add_argument("--config", type=Path, help="YAML config file (default: ./monitor.yaml)")
    parser.add_argument(
        "--init-config", type=Path, metavar="PATH", help="Write a config template and exit"
    )
    parser.add_argument("--log-level", help="Override the configured log level")
    args = parser.parse_args(argv)

    if args.init_config:
        setup_logging({"file_logs": False})
        write_default_config(args.init_config)
        cleanup_logging()
        return 0

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(e, file=sys.stderr)
        return 2

    if args.log_level:
        config.log_level = args.log_level
    setup_logging(config.logging_config())
    logger.debug(f"Config: {config.redacted()}")

    runner = MonitorRunner(config)
    runner.channel.subscribe(_log_snapshot)

    try:
        asyncio.run(runner.run())
    except FatalApiError as e:
        logger.critical(str(e))
        return 1
    finally:
        cleanup_logging()

    return 1 if runner.scheduler.fatal_error else 0


if __name__ == "__main__":
    sys.exit(main())
