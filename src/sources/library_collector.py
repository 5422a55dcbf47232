"""
Library collector - owned games and recent playtime (slow tier)

Steam reports playtime in minutes; every value in the snapshot is hours.
When recent-games monitoring is off, two-week playtime is read from the
owned games list instead of a separate GetRecentlyPlayedGames call.
"""

from models.api_responses import OwnedGame, OwnedGamesResponse, RecentlyPlayedGamesResponse
from models.enums import Domain
from models.snapshots import GameSummary, LibrarySnapshot
from sources.domain_collector import CollectContext, DomainCollector
from sources.steam_api import SteamApi


def _to_summary(game: OwnedGame) -> GameSummary:
    return GameSummary(
        app_id=game.appid,
        name=game.name or f"App {game.appid}",
        playtime_hours=game.playtime_forever / 60.0,
        recent_hours=game.playtime_2weeks / 60.0,
        icon_hash=game.img_icon_url,
    )


class LibraryCollector(DomainCollector):
    domain = Domain.LIBRARY
    snapshot_type = LibrarySnapshot

    def __init__(self, api: SteamApi, include_recent: bool = True, max_recent_games: int = 5):
        super().__init__(api)
        self.include_recent = include_recent
        self.max_recent_games = max_recent_games

    async def _collect(self, context: CollectContext) -> LibrarySnapshot:
        owned = self.decode(await self.api.owned_games(), OwnedGamesResponse, "Owned games")
        games = [_to_summary(g) for g in owned.response.games]

        if self.include_recent:
            recent_data = self.decode(
                await self.api.recently_played_games(),
                RecentlyPlayedGamesResponse,
                "Recently played games",
            )
            recent = [_to_summary(g) for g in recent_data.response.games]
        else:
            recent = [g for g in games if g.recent_hours > 0]

        played = [g for g in games if g.playtime_hours > 0]
        total_hours = sum(g.playtime_hours for g in games)
        most_played = max(games, key=lambda g: g.playtime_hours, default=None)

        recent.sort(key=lambda g: g.recent_hours, reverse=True)
        top_recent = recent[0] if recent else None

        return LibrarySnapshot(
            captured_at=context.captured_at,
            total_games=owned.response.game_count or len(games),
            total_playtime_hours=total_hours,
            unplayed_games=len(games) - len(played),
            average_playtime_hours=total_hours / len(played) if played else 0.0,
            most_played_name=most_played.name if most_played else "",
            most_played_hours=most_played.playtime_hours if most_played else 0.0,
            most_played_app_id=most_played.app_id if most_played else 0,
            recent_playtime_hours=sum(g.recent_hours for g in recent),
            recent_games_count=len(recent),
            most_played_recent_name=top_recent.name if top_recent else "",
            most_played_recent_hours=top_recent.recent_hours if top_recent else 0.0,
            recent_games=tuple(recent[: self.max_recent_games]),
            games=tuple(games),
        )
