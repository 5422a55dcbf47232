"""
Tests for Steam Web API response schemas
"""

import pytest
from pydantic import ValidationError

from models.api_request import RequestOutcome
from models.api_responses import (
    OwnedGamesResponse,
    PlayerAchievementsResponse,
    PlayerSummariesResponse,
    PlayerSummary,
)
from models.enums import OutcomeKind


class TestPlayerSummaries:
    def test_unknown_fields_ignored(self):
        body = (
            '{"response": {"players": [{"steamid": "1", "personaname": "Alyx",'
            ' "communityvisibilitystate": 3, "primaryclanid": "103582791429521408"}]}}'
        )
        players = PlayerSummariesResponse.model_validate_json(body).response.players
        assert players[0].personaname == "Alyx"

    def test_envelope_required(self):
        with pytest.raises(ValidationError):
            PlayerSummariesResponse.model_validate_json("{}")

    @pytest.mark.parametrize(
        "gameid,extra,app_id,in_game",
        [("620", "Portal 2", 620, True), (None, None, 0, False), ("x1", "Mod", 0, False)],
    )
    def test_game_app_id(self, gameid, extra, app_id, in_game):
        summary = PlayerSummary(steamid="1", gameid=gameid, gameextrainfo=extra)
        assert summary.game_app_id == app_id
        assert summary.is_in_game is in_game


class TestOwnedGames:
    def test_missing_playtime_is_zero(self):
        body = '{"response": {"game_count": 1, "games": [{"appid": 10, "playtime_2weeks": null}]}}'
        game = OwnedGamesResponse.model_validate_json(body).response.games[0]
        assert game.playtime_forever == 0
        assert game.playtime_2weeks == 0

    def test_private_profile_has_no_games(self):
        games = OwnedGamesResponse.model_validate_json('{"response": {}}').response
        assert games.games == []


class TestAchievements:
    def test_unlocked_flag(self):
        body = (
            '{"playerstats": {"gameName": "Portal 2", "success": true, "achievements":'
            ' [{"apiname": "a", "achieved": 1, "unlocktime": 5}, {"apiname": "b", "achieved": 0}]}}'
        )
        stats = PlayerAchievementsResponse.model_validate_json(body).playerstats
        assert [a.is_unlocked for a in stats.achievements] == [True, False]


class TestRequestOutcome:
    def test_describe_failure(self):
        outcome = RequestOutcome(OutcomeKind.TRANSIENT, status_code=503, error="Service Unavailable")
        assert outcome.describe() == "transient (HTTP 503): Service Unavailable"
        assert not outcome.ok

    def test_describe_transport_error(self):
        outcome = RequestOutcome(OutcomeKind.TRANSIENT, error="timed out")
        assert "no response" in outcome.describe()

    def test_retryable_kinds(self):
        assert OutcomeKind.RATE_LIMITED.is_retryable
        assert not OutcomeKind.FATAL.is_retryable
