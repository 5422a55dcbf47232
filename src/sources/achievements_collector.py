"""
Achievements collector - Steam level, badges and current game progress (slow tier)

The current game comes from the latest published player snapshot. Game
achievement lookups are best effort: many apps have no stats, so a
non-fatal failure there keeps the badge data and leaves game fields empty.
A fatal outcome still fails the whole domain.
"""

import logging

from models.api_responses import BadgesResponse, PlayerAchievementsResponse
from models.enums import Domain, OutcomeKind
from models.snapshots import AchievementsSnapshot, from_unix
from sources.domain_collector import CollectContext, CollectorError, DomainCollector
from sources.steam_api import SteamApi

logger = logging.getLogger(__name__)


class AchievementsCollector(DomainCollector):
    domain = Domain.ACHIEVEMENTS
    snapshot_type = AchievementsSnapshot

    def __init__(self, api: SteamApi, include_current_game: bool = True):
        super().__init__(api)
        self.include_current_game = include_current_game

    async def _collect(self, context: CollectContext) -> AchievementsSnapshot:
        badges = self.decode(await self.api.badges(), BadgesResponse, "Badges").response

        # player_xp_needed_current_level is the total XP at which this level began
        into_level = badges.player_xp - badges.player_xp_needed_current_level
        level_span = into_level + badges.player_xp_needed_to_level_up
        progress = 0.0
        if level_span > 0:
            progress = max(0.0, min(100.0, into_level / level_span * 100.0))

        fields = {
            "captured_at": context.captured_at,
            "steam_level": badges.player_level,
            "player_xp": badges.player_xp,
            "xp_to_next_level": badges.player_xp_needed_to_level_up,
            "level_progress_percent": progress,
            "badge_count": len(badges.badges),
        }

        game = self._current_game(context)
        if game is not None:
            fields.update(await self._game_fields(*game))

        return AchievementsSnapshot(**fields)

    def _current_game(self, context: CollectContext) -> tuple[int, str] | None:
        if not self.include_current_game or context.latest is None:
            return None
        player = context.latest.player
        if player is None or player.has_error or not player.is_in_game:
            return None
        return player.current_game_app_id, player.current_game_name

    async def _game_fields(self, app_id: int, game_name: str) -> dict:
        fields = {"game_app_id": app_id, "game_name": game_name}
        outcome = await self.api.player_achievements(app_id)

        if outcome.kind == OutcomeKind.FATAL:
            raise CollectorError(f"Achievements request failed: {outcome.describe()}", outcome.kind)
        if not outcome.ok or not outcome.body.strip():
            logger.info(f"No achievement data for app {app_id}: {outcome.describe()}")
            return fields

        stats = PlayerAchievementsResponse.model_validate_json(outcome.body).playerstats
        if not stats.success or not stats.achievements:
            logger.info(f"App {app_id} has no achievements: {stats.error or 'empty list'}")
            return fields

        unlocked = [a for a in stats.achievements if a.is_unlocked]
        total = len(stats.achievements)
        latest = max(unlocked, key=lambda a: a.unlocktime, default=None)

        fields.update(
            game_name=stats.gameName or game_name,
            achievements_total=total,
            achievements_unlocked=len(unlocked),
            achievement_percentage=len(unlocked) / total * 100.0,
            latest_achievement_name=(latest.name or latest.apiname) if latest else "",
            latest_achievement_at=from_unix(latest.unlocktime) if latest else None,
        )
        return fields
