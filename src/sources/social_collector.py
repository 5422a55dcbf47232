"""
Social collector - friend list plus per-friend presence (medium tier)

Enrichment modes:
- per_friend: one GetPlayerSummaries call per friend, spaced by its own
  pacing delay on top of the shared rate budget, with a cancellation
  checkpoint before every call
- batch: friends looked up 100 at a time
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta

from models.api_responses import FriendListResponse, PlayerSummariesResponse, PlayerSummary
from models.enums import Domain
from models.snapshots import FriendActivity, PlayerSnapshot, SocialSnapshot, from_unix
from sources.domain_collector import CollectContext, DomainCollector
from sources.steam_api import SteamApi

logger = logging.getLogger(__name__)

ENRICHMENT_MODES = ("per_friend", "batch")
RECENTLY_ACTIVE_WINDOW = timedelta(days=7)


class SocialCollector(DomainCollector):
    domain = Domain.SOCIAL
    snapshot_type = SocialSnapshot

    def __init__(
        self,
        api: SteamApi,
        max_friends: int = 10,
        mode: str = "per_friend",
        pacing_seconds: float = 0.5,
    ):
        super().__init__(api)
        if mode not in ENRICHMENT_MODES:
            raise ValueError(f"Unknown enrichment mode: {mode}")
        self.max_friends = max_friends
        self.mode = mode
        self.pacing_seconds = pacing_seconds

    async def _collect(self, context: CollectContext) -> SocialSnapshot:
        outcome = await self.api.friend_list()
        data = self.decode(outcome, FriendListResponse, "Friend list")
        friend_ids = [f.steamid for f in data.friendslist.friends]

        selected = friend_ids if self.max_friends <= 0 else friend_ids[: self.max_friends]
        if self.mode == "batch":
            summaries = await self._enrich_batched(selected)
        else:
            summaries = await self._enrich_each(selected)

        friends = sorted(
            (self._to_activity(s) for s in summaries),
            key=lambda f: (not f.is_in_game, not f.is_online, f.name.lower()),
        )
        return self._build(context, len(friend_ids), friends)

    async def _enrich_each(self, steam_ids: list[str]) -> list[PlayerSummary]:
        summaries: list[PlayerSummary] = []
        for index, steam_id in enumerate(steam_ids):
            if index and self.pacing_seconds > 0:
                await asyncio.sleep(self.pacing_seconds)
            else:
                await asyncio.sleep(0)

            outcome = await self.api.player_summaries([steam_id])
            data = self.decode(outcome, PlayerSummariesResponse, f"Friend {steam_id} summary")
            summaries.extend(data.response.players)
        return summaries

    async def _enrich_batched(self, steam_ids: list[str]) -> list[PlayerSummary]:
        summaries: list[PlayerSummary] = []
        size = SteamApi.MAX_IDS_PER_SUMMARY
        for start in range(0, len(steam_ids), size):
            await asyncio.sleep(0)
            outcome = await self.api.player_summaries(steam_ids[start : start + size])
            data = self.decode(outcome, PlayerSummariesResponse, "Friend summaries")
            summaries.extend(data.response.players)
        return summaries

    @staticmethod
    def _to_activity(summary: PlayerSummary) -> FriendActivity:
        return FriendActivity(
            steam_id=summary.steamid,
            name=summary.personaname or summary.steamid,
            persona_state=summary.personastate,
            online_state=PlayerSnapshot.online_state_for(summary.personastate),
            game_name=summary.gameextrainfo or "",
            last_logoff=from_unix(summary.lastlogoff),
        )

    def _build(
        self, context: CollectContext, total: int, friends: list[FriendActivity]
    ) -> SocialSnapshot:
        now = context.captured_at
        online = [f for f in friends if f.is_online]
        in_game = [f for f in online if f.is_in_game]

        games = Counter(f.game_name for f in in_game)
        popular_game = games.most_common(1)[0][0] if games else "None"

        if in_game:
            most_active = in_game[0].name
        elif online:
            most_active = online[0].name
        else:
            most_active = ""

        return SocialSnapshot(
            captured_at=now,
            total_friends=total,
            enriched_friends=len(friends),
            friends_online=len(online),
            friends_in_game=len(in_game),
            recently_active_friends=sum(1 for f in friends if _recently_active(f, now)),
            popular_game=popular_game,
            most_active_friend=most_active,
            friends=tuple(friends),
        )


def _recently_active(friend: FriendActivity, now: datetime) -> bool:
    if friend.is_online:
        return True
    if friend.last_logoff is None:
        return False
    return now - friend.last_logoff <= RECENTLY_ACTIVE_WINDOW
