"""
Steam Web API Response Schemas

Pydantic models for the JSON bodies returned by the endpoints the monitor
polls. Only the fields the collectors read are declared; everything else
is ignored. The top-level envelope key is required so that an empty or
unrelated body fails validation instead of decoding to defaults.

Endpoints:
- ISteamUser/GetPlayerSummaries/v2
- ISteamUser/GetFriendList/v1
- IPlayerService/GetOwnedGames/v1
- IPlayerService/GetRecentlyPlayedGames/v1
- IPlayerService/GetBadges/v1
- ISteamUserStats/GetPlayerAchievements/v1
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _SteamModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ==========================================================================
# PLAYER SUMMARIES
# ==========================================================================


class PlayerSummary(_SteamModel):
    """One entry of GetPlayerSummaries.response.players"""

    steamid: str
    personaname: str = ""
    profileurl: str = ""
    avatar: str = ""
    avatarmedium: str = ""
    avatarfull: str = ""
    personastate: int = 0
    lastlogoff: int = 0
    timecreated: int = 0
    loccountrycode: str = ""
    gameextrainfo: str | None = None
    gameid: str | None = None
    gameserverip: str | None = None

    @property
    def game_app_id(self) -> int:
        """Parsed gameid, 0 when absent or not numeric."""
        if not self.gameid:
            return 0
        try:
            return int(self.gameid)
        except ValueError:
            return 0

    @property
    def is_in_game(self) -> bool:
        return bool(self.gameextrainfo) and self.game_app_id > 0


class _PlayerList(_SteamModel):
    players: list[PlayerSummary] = Field(default_factory=list)


class PlayerSummariesResponse(_SteamModel):
    response: _PlayerList


# ==========================================================================
# FRIENDS
# ==========================================================================


class FriendEntry(_SteamModel):
    steamid: str
    relationship: str = "friend"
    friend_since: int = 0


class _FriendList(_SteamModel):
    friends: list[FriendEntry] = Field(default_factory=list)


class FriendListResponse(_SteamModel):
    friendslist: _FriendList


# ==========================================================================
# LIBRARY
# ==========================================================================


class OwnedGame(_SteamModel):
    """Owned or recently played game; playtimes are in minutes"""

    appid: int
    name: str = ""
    playtime_forever: int = 0
    playtime_2weeks: int = 0
    img_icon_url: str = ""
    rtime_last_played: int = 0

    @field_validator("playtime_forever", "playtime_2weeks", mode="before")
    @classmethod
    def none_is_zero(cls, v):
        return 0 if v is None else v


class _OwnedGames(_SteamModel):
    game_count: int = 0
    games: list[OwnedGame] = Field(default_factory=list)


class OwnedGamesResponse(_SteamModel):
    response: _OwnedGames


class _RecentGames(_SteamModel):
    total_count: int = 0
    games: list[OwnedGame] = Field(default_factory=list)


class RecentlyPlayedGamesResponse(_SteamModel):
    response: _RecentGames


# ==========================================================================
# BADGES / LEVEL
# ==========================================================================


class Badge(_SteamModel):
    badgeid: int = 0
    level: int = 0
    xp: int = 0
    completion_time: int = 0
    scarcity: int = 0
    appid: int | None = None


class _Badges(_SteamModel):
    badges: list[Badge] = Field(default_factory=list)
    player_xp: int = 0
    player_level: int = 0
    player_xp_needed_to_level_up: int = 0
    player_xp_needed_current_level: int = 0


class BadgesResponse(_SteamModel):
    response: _Badges


# ==========================================================================
# ACHIEVEMENTS
# ==========================================================================


class PlayerAchievement(_SteamModel):
    apiname: str
    achieved: int = 0
    unlocktime: int = 0
    name: str | None = None
    description: str | None = None

    @property
    def is_unlocked(self) -> bool:
        return self.achieved == 1


class _PlayerStats(_SteamModel):
    steamID: str = ""
    gameName: str = ""
    achievements: list[PlayerAchievement] = Field(default_factory=list)
    success: bool = True
    error: str | None = None


class PlayerAchievementsResponse(_SteamModel):
    playerstats: _PlayerStats
