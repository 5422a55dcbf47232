"""
Shared test fixtures for pytest
"""

import asyncio
import json
import time
from datetime import UTC, datetime, timedelta

import pytest

from models.enums import SnapshotStatus, Tier
from models.snapshots import CompositeSnapshot, PlayerSnapshot
from sources.domain_collector import CollectContext
from sources.http_transport import HttpResponse
from sources.rate_budget import RateBudget
from sources.rate_limited_client import RateLimitedClient
from sources.steam_api import SteamApi

STEAM_ID = "76561197960287930"
API_KEY = "TESTKEY0123456789ABCDEF"
T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FakeTransport:
    """
    Scripted stand-in for HttpTransport.

    Responses are queued per endpoint (matched by substring of the URL).
    The last queued response repeats once the queue is exhausted. Queue an
    Exception instance to have get() raise it.
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.routes: dict[str, list] = {}
        self.calls: list[tuple[str, dict, float]] = []
        self.closed = False

    def add(self, endpoint: str, *responses):
        self.routes.setdefault(endpoint, []).extend(responses)
        return self

    def ok(self, endpoint: str, payload):
        return self.add(endpoint, HttpResponse(200, json.dumps(payload)))

    def status(self, endpoint: str, status: int, text: str = "", headers=None):
        return self.add(endpoint, HttpResponse(status, text, headers or {}))

    def calls_to(self, endpoint: str) -> list[dict]:
        return [params for url, params, _ in self.calls if endpoint in url]

    async def get(self, url, params, timeout):
        self.calls.append((url, dict(params), time.monotonic()))
        if self.delay:
            await asyncio.sleep(self.delay)
        for endpoint, queue in self.routes.items():
            if endpoint in url:
                response = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(response, Exception):
                    raise response
                return response
        return HttpResponse(404, "no route")

    async def close(self):
        self.closed = True


class Payloads:
    """Builders for Steam Web API JSON bodies."""

    @staticmethod
    def player(
        steamid=STEAM_ID, name="Gordon", state=1, game=None, game_id=None, lastlogoff=0
    ) -> dict:
        player = {
            "steamid": steamid,
            "personaname": name,
            "profileurl": f"https://steamcommunity.com/profiles/{steamid}/",
            "avatarfull": "https://avatars.example/full.jpg",
            "personastate": state,
            "lastlogoff": lastlogoff,
        }
        if game is not None:
            player["gameextrainfo"] = game
            player["gameid"] = str(game_id)
        return player

    @staticmethod
    def summaries(*players) -> dict:
        return {"response": {"players": list(players)}}

    @staticmethod
    def friends(*steam_ids) -> dict:
        return {
            "friendslist": {
                "friends": [
                    {"steamid": s, "relationship": "friend", "friend_since": 0} for s in steam_ids
                ]
            }
        }

    @staticmethod
    def owned_games(*games) -> dict:
        return {"response": {"game_count": len(games), "games": list(games)}}

    @staticmethod
    def recent_games(*games) -> dict:
        return {"response": {"total_count": len(games), "games": list(games)}}

    @staticmethod
    def game(appid, name, forever=0, two_weeks=None) -> dict:
        game = {"appid": appid, "name": name, "playtime_forever": forever}
        if two_weeks is not None:
            game["playtime_2weeks"] = two_weeks
        return game

    @staticmethod
    def badges(level=10, xp=1500, to_next=100, current_level_xp=1400, count=3) -> dict:
        return {
            "response": {
                "badges": [{"badgeid": i, "level": 1, "xp": 100} for i in range(count)],
                "player_xp": xp,
                "player_level": level,
                "player_xp_needed_to_level_up": to_next,
                "player_xp_needed_current_level": current_level_xp,
            }
        }

    @staticmethod
    def achievements(game_name, *entries) -> dict:
        return {
            "playerstats": {
                "steamID": STEAM_ID,
                "gameName": game_name,
                "achievements": [
                    {"apiname": api, "achieved": achieved, "unlocktime": unlock, "name": api.title()}
                    for api, achieved, unlock in entries
                ],
                "success": True,
            }
        }


class RecordingSleep:
    """Backoff sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def payloads():
    return Payloads


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def backoff_sleep():
    return RecordingSleep()


@pytest.fixture
def client(transport, backoff_sleep):
    """Client with no rate spacing and recorded backoff."""
    return RateLimitedClient(
        "https://api.example.test",
        API_KEY,
        RateBudget(0.0),
        transport=transport,
        timeout=5.0,
        backoff_base=1.0,
        backoff_max=30.0,
        sleep=backoff_sleep,
    )


@pytest.fixture
def api(client):
    return SteamApi(client, STEAM_ID)


@pytest.fixture
def make_context():
    """Factory for collector contexts."""

    def _make(tier=Tier.FAST, cycle=1, now=T0, latest=None):
        return CollectContext(tier=tier, cycle=cycle, now=now, latest=latest)

    return _make


@pytest.fixture
def in_game_composite():
    """Published snapshot whose player is playing app 620."""
    player = PlayerSnapshot(
        captured_at=T0 - timedelta(seconds=5),
        steam_id=STEAM_ID,
        player_name="Gordon",
        persona_state=1,
        online_state="Online",
        current_game_name="Portal 2",
        current_game_app_id=620,
    )
    return CompositeSnapshot(status=SnapshotStatus.ONLINE, player=player)
