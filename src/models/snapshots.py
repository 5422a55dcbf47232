"""
Snapshot Models

Immutable values produced by the collectors and the aggregator.

- DomainSnapshot: base for the four per-domain results (player, social,
  library, achievements). Each carries its own capture time and an error
  marker; a failed collection yields default field values.
- CompositeSnapshot: the merged view published after every cycle. Domains
  refreshed by slower tiers keep their own captured_at, so the age of every
  part is always known.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import ClassVar

from models.enums import Domain, OutcomeKind, PersonaState, SnapshotStatus, Tier
from models.session_record import SessionRecord

BANNER_URL_TEMPLATE = (
    "https://shared.akamai.steamstatic.com/store_item_assets/steam/apps/{app_id}/library_hero.jpg"
)
ICON_URL_TEMPLATE = "https://media.steampowered.com/steamcommunity/public/images/apps/{app_id}/{icon}.jpg"


def utcnow() -> datetime:
    return datetime.now(UTC)


def from_unix(timestamp: int | None) -> datetime | None:
    """Steam reports times as unix seconds; 0 means unknown."""
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, UTC)


@dataclass(frozen=True, kw_only=True)
class DomainSnapshot:
    """Common fields of every per-domain snapshot."""

    DOMAIN: ClassVar[Domain]

    captured_at: datetime = field(default_factory=utcnow)
    error: str | None = None
    error_kind: OutcomeKind | None = None

    @property
    def domain(self) -> Domain:
        return self.DOMAIN

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def is_fatal(self) -> bool:
        return self.error_kind == OutcomeKind.FATAL

    @classmethod
    def failed(
        cls,
        message: str,
        captured_at: datetime | None = None,
        kind: OutcomeKind | None = None,
    ):
        """Snapshot with default payload and the error marker set."""
        return cls(captured_at=captured_at or utcnow(), error=message, error_kind=kind)

    def age_seconds(self, now: datetime | None = None) -> float:
        return ((now or utcnow()) - self.captured_at).total_seconds()

    def summary(self) -> str:
        """One line for the composite details string."""
        if self.has_error:
            return f"{self.DOMAIN.value}: {self.error}"
        return self._summary()

    def _summary(self) -> str:
        return f"{self.DOMAIN.value}: ok"


# ==========================================================================
# PLAYER
# ==========================================================================


@dataclass(frozen=True, kw_only=True)
class PlayerSnapshot(DomainSnapshot):
    DOMAIN: ClassVar[Domain] = Domain.PLAYER

    steam_id: str = ""
    player_name: str = "Unknown"
    profile_url: str = ""
    avatar_url: str = ""
    persona_state: int = 0
    online_state: str = "Offline"
    last_logoff: datetime | None = None
    country_code: str = ""
    current_game_name: str = ""
    current_game_app_id: int = 0
    current_game_server_ip: str = ""

    @property
    def is_online(self) -> bool:
        return not self.has_error and self.online_state not in ("", "Offline")

    @property
    def is_in_game(self) -> bool:
        return bool(self.current_game_name) and self.current_game_app_id > 0

    @property
    def activity_key(self) -> str | None:
        """Identifies what the player is doing; None when idle."""
        if self.has_error or not self.is_in_game:
            return None
        return str(self.current_game_app_id)

    @property
    def banner_url(self) -> str:
        if not self.is_in_game:
            return ""
        return BANNER_URL_TEMPLATE.format(app_id=self.current_game_app_id)

    @property
    def display_status(self) -> str:
        if self.has_error:
            return "Error"
        if self.is_in_game:
            return f"Playing {self.current_game_name}"
        return self.online_state

    @staticmethod
    def online_state_for(persona_state: int) -> str:
        return PersonaState.label(persona_state)

    def _summary(self) -> str:
        return f"Player: {self.player_name}, Game: {self.current_game_name or 'None'}"


# ==========================================================================
# SOCIAL
# ==========================================================================


@dataclass(frozen=True)
class FriendActivity:
    """One enriched friend entry"""

    steam_id: str
    name: str = ""
    persona_state: int = 0
    online_state: str = "Offline"
    game_name: str = ""
    last_logoff: datetime | None = None

    @property
    def is_online(self) -> bool:
        return self.persona_state > 0

    @property
    def is_in_game(self) -> bool:
        return self.is_online and bool(self.game_name)


@dataclass(frozen=True, kw_only=True)
class SocialSnapshot(DomainSnapshot):
    DOMAIN: ClassVar[Domain] = Domain.SOCIAL

    total_friends: int = 0
    enriched_friends: int = 0
    friends_online: int = 0
    friends_in_game: int = 0
    recently_active_friends: int = 0
    popular_game: str = "None"
    most_active_friend: str = ""
    friends: tuple[FriendActivity, ...] = ()

    @property
    def activity_level(self) -> str:
        if self.friends_in_game > 5:
            return "Very Social"
        if self.friends_in_game > 2:
            return "Social"
        if self.friends_online > 0:
            return "Connected"
        return "Solo"

    def _summary(self) -> str:
        return (
            f"Friends: {self.friends_online}/{self.total_friends} online, "
            f"{self.friends_in_game} in game"
        )


# ==========================================================================
# LIBRARY
# ==========================================================================


@dataclass(frozen=True)
class GameSummary:
    """Owned game with playtimes converted to hours"""

    app_id: int
    name: str = ""
    playtime_hours: float = 0.0
    recent_hours: float = 0.0
    icon_hash: str = ""

    @property
    def icon_url(self) -> str:
        if not self.icon_hash:
            return ""
        return ICON_URL_TEMPLATE.format(app_id=self.app_id, icon=self.icon_hash)


@dataclass(frozen=True, kw_only=True)
class LibrarySnapshot(DomainSnapshot):
    DOMAIN: ClassVar[Domain] = Domain.LIBRARY

    total_games: int = 0
    total_playtime_hours: float = 0.0
    unplayed_games: int = 0
    average_playtime_hours: float = 0.0
    most_played_name: str = ""
    most_played_hours: float = 0.0
    most_played_app_id: int = 0
    recent_playtime_hours: float = 0.0
    recent_games_count: int = 0
    most_played_recent_name: str = ""
    most_played_recent_hours: float = 0.0
    recent_games: tuple[GameSummary, ...] = ()
    games: tuple[GameSummary, ...] = ()

    def hours_for(self, app_id: int) -> float | None:
        """Total playtime for one owned game, None when not owned."""
        for game in self.games:
            if game.app_id == app_id:
                return game.playtime_hours
        return None

    @property
    def engagement_level(self) -> str:
        avg = self.average_playtime_hours
        if avg >= 50:
            return "Hardcore"
        if avg >= 20:
            return "Dedicated"
        if avg >= 5:
            return "Regular"
        if avg >= 1:
            return "Casual"
        return "Inactive"

    @property
    def recent_activity_level(self) -> str:
        hours = self.recent_playtime_hours
        if hours >= 40:
            return "Very Active"
        if hours >= 20:
            return "Active"
        if hours >= 5:
            return "Moderate"
        if hours > 0:
            return "Light"
        return "Inactive"

    def _summary(self) -> str:
        return f"Library: {self.total_games} games, {self.total_playtime_hours:.1f}h total"


# ==========================================================================
# ACHIEVEMENTS
# ==========================================================================


@dataclass(frozen=True, kw_only=True)
class AchievementsSnapshot(DomainSnapshot):
    DOMAIN: ClassVar[Domain] = Domain.ACHIEVEMENTS

    steam_level: int = 0
    player_xp: int = 0
    xp_to_next_level: int = 0
    level_progress_percent: float = 0.0
    badge_count: int = 0
    game_app_id: int = 0
    game_name: str = ""
    achievements_total: int = 0
    achievements_unlocked: int = 0
    achievement_percentage: float = 0.0
    latest_achievement_name: str = ""
    latest_achievement_at: datetime | None = None

    @property
    def has_game_stats(self) -> bool:
        return self.game_app_id > 0 and self.achievements_total > 0

    @property
    def completion_level(self) -> str:
        pct = self.achievement_percentage
        if pct >= 100:
            return "Perfect"
        if pct >= 90:
            return "Near Complete"
        if pct >= 75:
            return "Advanced"
        if pct >= 50:
            return "Halfway"
        if pct >= 25:
            return "Started"
        if pct > 0:
            return "Beginner"
        return "None"

    def _summary(self) -> str:
        text = f"Level {self.steam_level}, {self.badge_count} badges"
        if self.has_game_stats:
            text += (
                f", {self.game_name}: {self.achievements_unlocked}/{self.achievements_total}"
                f" ({self.achievement_percentage:.0f}%)"
            )
        return text


# ==========================================================================
# COMPOSITE
# ==========================================================================


@dataclass(frozen=True, kw_only=True)
class CompositeSnapshot:
    """
    Merged result of the latest cycle plus the newest snapshot of every
    other domain. Never mutated after publication; use evolve() to derive.
    """

    status: SnapshotStatus
    details: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    tier: Tier | None = None
    cycle: int = 0
    player: PlayerSnapshot | None = None
    social: SocialSnapshot | None = None
    library: LibrarySnapshot | None = None
    achievements: AchievementsSnapshot | None = None
    session: SessionRecord | None = None
    failed_domains: tuple[Domain, ...] = ()
    fatal: bool = False

    _FIELDS: ClassVar[dict[Domain, str]] = {
        Domain.PLAYER: "player",
        Domain.SOCIAL: "social",
        Domain.LIBRARY: "library",
        Domain.ACHIEVEMENTS: "achievements",
    }

    @classmethod
    def empty(cls) -> "CompositeSnapshot":
        return cls(status=SnapshotStatus.OFFLINE, details="No data yet")

    def domain(self, domain: Domain) -> DomainSnapshot | None:
        return getattr(self, self._FIELDS[domain])

    def domain_age(self, domain: Domain, now: datetime | None = None) -> float | None:
        """Seconds since the given domain was captured, None when never captured."""
        snapshot = self.domain(domain)
        if snapshot is None:
            return None
        return snapshot.age_seconds(now)

    @classmethod
    def domain_fields(cls, snapshots: list[DomainSnapshot]) -> dict[str, DomainSnapshot]:
        """Field overrides placing each snapshot under its own domain."""
        return {cls._FIELDS[s.domain]: s for s in snapshots}

    def evolve(self, **changes) -> "CompositeSnapshot":
        return replace(self, **changes)

    @property
    def is_error(self) -> bool:
        return self.status == SnapshotStatus.ERROR

    @property
    def current_game_total_hours(self) -> float | None:
        """Lifetime hours of the game being played, from the latest library data."""
        if self.player is None or not self.player.is_in_game or self.library is None:
            return None
        if self.library.has_error:
            return None
        return self.library.hours_for(self.player.current_game_app_id)
