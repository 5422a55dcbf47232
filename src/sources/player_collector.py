"""Player collector - profile, persona state and current game (fast tier)"""

from models.api_responses import PlayerSummariesResponse
from models.enums import Domain
from models.snapshots import PlayerSnapshot, from_unix
from sources.domain_collector import CollectContext, CollectorError, DomainCollector


class PlayerCollector(DomainCollector):
    domain = Domain.PLAYER
    snapshot_type = PlayerSnapshot

    async def _collect(self, context: CollectContext) -> PlayerSnapshot:
        outcome = await self.api.player_summaries([self.api.steam_id])
        data = self.decode(outcome, PlayerSummariesResponse, "Player summary")

        if not data.response.players:
            raise CollectorError(f"Player {self.api.steam_id} not found")
        player = data.response.players[0]

        in_game = player.is_in_game
        return PlayerSnapshot(
            captured_at=context.captured_at,
            steam_id=player.steamid,
            player_name=player.personaname or "Unknown",
            profile_url=player.profileurl,
            avatar_url=player.avatarfull or player.avatarmedium or player.avatar,
            persona_state=player.personastate,
            online_state=PlayerSnapshot.online_state_for(player.personastate),
            last_logoff=from_unix(player.lastlogoff),
            country_code=player.loccountrycode,
            current_game_name=player.gameextrainfo if in_game else "",
            current_game_app_id=player.game_app_id if in_game else 0,
            current_game_server_ip=(player.gameserverip or "") if in_game else "",
        )
