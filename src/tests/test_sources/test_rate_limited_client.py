"""
Tests for RateLimitedClient - spacing, classification, retry and backoff
"""

import asyncio
import time

import aiohttp
import pytest

from models.api_request import ApiRequest
from models.enums import OutcomeKind
from sources.http_transport import HttpResponse
from sources.rate_budget import RateBudget
from sources.rate_limited_client import (
    MAX_ATTEMPTS,
    RateLimitedClient,
    classify_status,
    parse_retry_after,
)

REQUEST = ApiRequest("ISteamUser/GetPlayerSummaries/v2", {"steamids": "1"}, label="summaries")


class TestClassification:
    @pytest.mark.parametrize(
        "status,kind",
        [
            (200, OutcomeKind.SUCCESS),
            (204, OutcomeKind.SUCCESS),
            (429, OutcomeKind.RATE_LIMITED),
            (401, OutcomeKind.FATAL),
            (403, OutcomeKind.FATAL),
            (500, OutcomeKind.TRANSIENT),
            (503, OutcomeKind.TRANSIENT),
            (404, OutcomeKind.TRANSIENT),
        ],
    )
    def test_status_buckets(self, status, kind):
        assert classify_status(status) == kind

    def test_retry_after_seconds(self):
        assert parse_retry_after({"Retry-After": "7"}) == 7.0
        assert parse_retry_after({"retry-after": "2.5"}) == 2.5

    def test_retry_after_missing_or_date(self):
        assert parse_retry_after({}) is None
        assert parse_retry_after({"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}) is None


class TestSuccess:
    @pytest.mark.asyncio
    async def test_returns_body_after_one_attempt(self, client, transport):
        transport.add("GetPlayerSummaries", HttpResponse(200, '{"response": {}}'))

        outcome = await client.call(REQUEST)

        assert outcome.ok
        assert outcome.body == '{"response": {}}'
        assert outcome.attempts == 1
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_sends_credential_and_params(self, client, transport):
        transport.add("GetPlayerSummaries", HttpResponse(200, "{}"))

        await client.call(REQUEST)

        url, params, _ = transport.calls[0]
        assert url == "https://api.example.test/ISteamUser/GetPlayerSummaries/v2/"
        assert params["key"] == client._api_key
        assert params["steamids"] == "1"
        assert params["format"] == "json"


class TestFatal:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_fatal_is_never_retried(self, client, transport, backoff_sleep, status):
        transport.status("GetPlayerSummaries", status, "Forbidden")

        outcome = await client.call(REQUEST)

        assert outcome.kind == OutcomeKind.FATAL
        assert outcome.status_code == status
        assert len(transport.calls) == 1
        assert backoff_sleep.delays == []

    @pytest.mark.asyncio
    async def test_fatal_latches_credential(self, client, transport):
        transport.status("GetPlayerSummaries", 401)
        await client.call(REQUEST)

        outcome = await client.call(REQUEST)

        assert client.credential_rejected
        assert outcome.kind == OutcomeKind.FATAL
        assert outcome.attempts == 0
        assert len(transport.calls) == 1


class TestRetry:
    @pytest.mark.asyncio
    async def test_transient_retried_three_times_then_surfaced(
        self, client, transport, backoff_sleep
    ):
        transport.status("GetPlayerSummaries", 500, "Internal Server Error")

        outcome = await client.call(REQUEST)

        assert outcome.kind == OutcomeKind.TRANSIENT
        assert outcome.attempts == MAX_ATTEMPTS == 3
        assert outcome.body == ""
        assert len(transport.calls) == 3
        assert backoff_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_backoff_delays_strictly_increase(self, client, transport, backoff_sleep):
        transport.status("GetPlayerSummaries", 429, headers={"Retry-After": "7"})

        outcome = await client.call(REQUEST)

        assert outcome.kind == OutcomeKind.TRANSIENT
        assert outcome.retry_after == 7.0
        assert len(transport.calls) == 3
        assert all(a < b for a, b in zip(backoff_sleep.delays, backoff_sleep.delays[1:]))

    @pytest.mark.asyncio
    async def test_rate_limited_then_success(self, client, transport, backoff_sleep):
        transport.add(
            "GetPlayerSummaries",
            HttpResponse(429, "Too Many Requests"),
            HttpResponse(200, "{}"),
        )

        outcome = await client.call(REQUEST)

        assert outcome.ok
        assert outcome.attempts == 2
        assert backoff_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, client, transport):
        transport.add(
            "GetPlayerSummaries",
            aiohttp.ClientConnectionError("connection reset"),
            HttpResponse(200, "{}"),
        )

        outcome = await client.call(REQUEST)

        assert outcome.ok
        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, client, transport):
        transport.add("GetPlayerSummaries", asyncio.TimeoutError())

        outcome = await client.call(REQUEST)

        assert outcome.kind == OutcomeKind.TRANSIENT
        assert "timed out" in outcome.error
        assert len(transport.calls) == 3

    def test_backoff_is_capped(self, client):
        assert client.backoff_delay(0) == 1.0
        assert client.backoff_delay(3) == 8.0
        assert client.backoff_delay(10) == client.backoff_max

    @pytest.mark.asyncio
    async def test_errors_never_leak_the_key(self, client, transport):
        key = client._api_key
        transport.add("GetPlayerSummaries", aiohttp.ClientError(f"bad url ?key={key}"))

        outcome = await client.call(REQUEST)

        assert key not in outcome.error

    @pytest.mark.asyncio
    async def test_stats_count_attempts(self, client, transport):
        transport.add("GetPlayerSummaries", HttpResponse(503), HttpResponse(200, "{}"))

        await client.call(REQUEST)

        stats = client.get_stats()
        assert stats["calls"] == 1
        assert stats["attempts"] == 2
        assert stats["retries"] == 1
        assert stats["transient_failures"] == 1
        assert stats["successes"] == 1


class TestSpacing:
    """Calls from concurrent callers respect the shared minimum interval"""

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_spaced(self, transport):
        transport.add("GetPlayerSummaries", HttpResponse(200, "{}"))
        min_interval = 0.05
        client = RateLimitedClient(
            "https://api.example.test", "k", RateBudget(min_interval), transport=transport
        )

        started = time.monotonic()
        outcomes = await asyncio.gather(*(client.call(REQUEST) for _ in range(5)))
        elapsed = time.monotonic() - started

        assert all(o.ok for o in outcomes)
        assert elapsed >= 4 * min_interval - 0.01
        dispatch_times = sorted(t for _, _, t in transport.calls)
        gaps = [b - a for a, b in zip(dispatch_times, dispatch_times[1:])]
        assert min(gaps) >= min_interval - 0.005

    @pytest.mark.asyncio
    async def test_retries_reenter_the_rate_budget(self, transport):
        transport.add("GetPlayerSummaries", HttpResponse(500), HttpResponse(200, "{}"))
        budget = RateBudget(0.05)
        client = RateLimitedClient(
            "https://api.example.test",
            "k",
            budget,
            transport=transport,
            backoff_base=0.0,
            backoff_max=0.0,
        )

        await client.call(REQUEST)

        assert budget.get_stats()["total_reservations"] == 2
        first, second = (t for _, _, t in transport.calls)
        assert second - first >= 0.05 - 0.005

    @pytest.mark.asyncio
    async def test_cancellation_unwinds_rate_wait(self, transport):
        transport.add("GetPlayerSummaries", HttpResponse(200, "{}"))
        budget = RateBudget(10.0)
        client = RateLimitedClient("https://api.example.test", "k", budget, transport=transport)
        await client.call(REQUEST)

        pending = asyncio.create_task(client.call(REQUEST))
        await asyncio.sleep(0.01)
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(pending, timeout=1.0)
        assert len(transport.calls) == 1
