"""
Steam Web API endpoints used by the collectors.

Each method builds an ApiRequest and sends it through the shared
RateLimitedClient. Bodies are returned unparsed inside the RequestOutcome;
the collectors decode them with the schemas in models.api_responses.
"""

import re

from models.api_request import ApiRequest, RequestOutcome
from sources.rate_limited_client import RateLimitedClient

STEAM_ID64_PATTERN = re.compile(r"^7656119\d{10}$")


def is_valid_steam_id64(steam_id: str) -> bool:
    return bool(STEAM_ID64_PATTERN.match(steam_id or ""))


class SteamApi:
    """Endpoint catalogue bound to one account"""

    PLAYER_SUMMARIES = "ISteamUser/GetPlayerSummaries/v2"
    FRIEND_LIST = "ISteamUser/GetFriendList/v1"
    OWNED_GAMES = "IPlayerService/GetOwnedGames/v1"
    RECENTLY_PLAYED = "IPlayerService/GetRecentlyPlayedGames/v1"
    BADGES = "IPlayerService/GetBadges/v1"
    PLAYER_ACHIEVEMENTS = "ISteamUserStats/GetPlayerAchievements/v1"

    MAX_IDS_PER_SUMMARY = 100

    def __init__(self, client: RateLimitedClient, steam_id: str):
        self.client = client
        self.steam_id = steam_id

    async def player_summaries(self, steam_ids: list[str] | None = None) -> RequestOutcome:
        ids = steam_ids or [self.steam_id]
        if len(ids) > self.MAX_IDS_PER_SUMMARY:
            raise ValueError(f"At most {self.MAX_IDS_PER_SUMMARY} ids per summary request")
        return await self.client.call(
            ApiRequest(
                self.PLAYER_SUMMARIES,
                {"steamids": ",".join(ids)},
                label="GetPlayerSummaries",
            )
        )

    async def friend_list(self) -> RequestOutcome:
        return await self.client.call(
            ApiRequest(
                self.FRIEND_LIST,
                {"steamid": self.steam_id, "relationship": "friend"},
                label="GetFriendList",
            )
        )

    async def owned_games(self) -> RequestOutcome:
        return await self.client.call(
            ApiRequest(
                self.OWNED_GAMES,
                {"steamid": self.steam_id, "include_appinfo": 1, "include_played_free_games": 1},
                label="GetOwnedGames",
            )
        )

    async def recently_played_games(self, count: int = 0) -> RequestOutcome:
        params = {"steamid": self.steam_id}
        if count > 0:
            params["count"] = count
        return await self.client.call(
            ApiRequest(self.RECENTLY_PLAYED, params, label="GetRecentlyPlayedGames")
        )

    async def badges(self) -> RequestOutcome:
        return await self.client.call(
            ApiRequest(self.BADGES, {"steamid": self.steam_id}, label="GetBadges")
        )

    async def player_achievements(self, app_id: int) -> RequestOutcome:
        return await self.client.call(
            ApiRequest(
                self.PLAYER_ACHIEVEMENTS,
                {"steamid": self.steam_id, "appid": app_id, "l": "english"},
                label="GetPlayerAchievements",
            )
        )
