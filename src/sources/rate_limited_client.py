"""
Rate Limited Client

Every outbound call from every tier and collector goes through call():

1. Reserve a slot on the shared RateBudget and wait for it
2. Dispatch via the transport with a fixed per-request timeout
3. Classify the result:
   - 2xx            -> SUCCESS
   - 429            -> RATE_LIMITED (Retry-After kept as a hint)
   - 401 / 403      -> FATAL, never retried
   - anything else  -> TRANSIENT (5xx, other 4xx, timeouts, connection errors)
4. Retry RATE_LIMITED / TRANSIENT with exponential backoff, 3 attempts total

After a FATAL outcome the credential is latched as rejected and later
calls fail immediately without touching the network.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import aiohttp

from models.api_request import ApiRequest, RequestOutcome
from models.enums import OutcomeKind
from sources.http_transport import HttpResponse, HttpTransport
from sources.rate_budget import RateBudget

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
REDACTED = "[REDACTED]"


class SteamApiError(Exception):
    """Base error for the Steam Web API client"""


class FatalApiError(SteamApiError):
    """The credential or account was rejected; the engine cannot continue"""


class Transport(Protocol):
    async def get(self, url: str, params: dict[str, Any], timeout: float) -> HttpResponse: ...

    async def close(self) -> None: ...


def classify_status(status: int) -> OutcomeKind:
    if 200 <= status < 300:
        return OutcomeKind.SUCCESS
    if status == 429:
        return OutcomeKind.RATE_LIMITED
    if status in (401, 403):
        return OutcomeKind.FATAL
    return OutcomeKind.TRANSIENT


def parse_retry_after(headers: Mapping[str, str]) -> float | None:
    """Retry-After in seconds; HTTP-date values are ignored."""
    for key, value in headers.items():
        if key.lower() == "retry-after":
            try:
                return max(0.0, float(value))
            except (TypeError, ValueError):
                return None
    return None


class RateLimitedClient:
    """
    Serialized, retrying client for one API credential.

    Args:
        base_url: API root, e.g. https://api.steampowered.com
        api_key: Credential sent as the "key" query parameter
        budget: Shared RateBudget (one per credential)
        transport: Object with async get()/close(); defaults to HttpTransport
        timeout: Per-request timeout in seconds
        backoff_base: First backoff delay in seconds
        backoff_max: Cap for any single backoff delay
        sleep: Awaitable sleep used for backoff delays
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        budget: RateBudget,
        transport: Transport | None = None,
        timeout: float = 30.0,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.budget = budget
        self.transport = transport or HttpTransport()
        self.timeout = timeout
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._api_key = api_key
        self._sleep = sleep
        self._credential_rejected = False

        self._stats_lock = threading.Lock()
        self._stats = {
            "calls": 0,
            "attempts": 0,
            "retries": 0,
            "successes": 0,
            "transient_failures": 0,
            "rate_limited": 0,
            "fatal": 0,
        }

    @property
    def credential_rejected(self) -> bool:
        return self._credential_rejected

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after 0-based attempt number `attempt`."""
        return min(self.backoff_base * (2**attempt), self.backoff_max)

    def redact(self, text: str) -> str:
        if self._api_key:
            return text.replace(self._api_key, REDACTED)
        return text

    async def call(self, request: ApiRequest) -> RequestOutcome:
        """Issue one logical call; never raises except on cancellation."""
        self._count("calls")
        if self._credential_rejected:
            return RequestOutcome(
                kind=OutcomeKind.FATAL,
                error="credential was rejected earlier in this session",
                attempts=0,
            )

        last: RequestOutcome | None = None
        for attempt in range(MAX_ATTEMPTS):
            waited = await self.budget.acquire()
            outcome = await self._attempt(request, attempt + 1, waited)

            if outcome.ok:
                self._count("successes")
                return outcome

            if outcome.is_fatal:
                self._count("fatal")
                self._credential_rejected = True
                logger.error(
                    f"{request.name}: fatal response, not retrying: {outcome.describe()}",
                    extra={"endpoint": request.endpoint, "status": outcome.status_code},
                )
                return outcome

            if outcome.kind == OutcomeKind.RATE_LIMITED:
                self._count("rate_limited")
            else:
                self._count("transient_failures")
            last = outcome

            if attempt + 1 < MAX_ATTEMPTS:
                delay = self.backoff_delay(attempt)
                self._count("retries")
                logger.warning(
                    f"{request.name}: attempt {attempt + 1}/{MAX_ATTEMPTS} failed "
                    f"({outcome.describe()}), retrying in {delay:.2f}s",
                    extra={
                        "endpoint": request.endpoint,
                        "attempt": attempt + 1,
                        "backoff_seconds": delay,
                        "retry_after": outcome.retry_after,
                    },
                )
                await self._sleep(delay)

        logger.error(
            f"{request.name}: giving up after {MAX_ATTEMPTS} attempts: {last.describe()}",
            extra={"endpoint": request.endpoint, "status": last.status_code},
        )
        return RequestOutcome(
            kind=OutcomeKind.TRANSIENT,
            status_code=last.status_code,
            error=f"gave up after {MAX_ATTEMPTS} attempts: {last.error}",
            retry_after=last.retry_after,
            attempts=MAX_ATTEMPTS,
        )

    async def _attempt(self, request: ApiRequest, attempt: int, waited: float) -> RequestOutcome:
        self._count("attempts")
        url = f"{self.base_url}/{request.endpoint}/"
        params = {**request.params, "key": self._api_key, "format": "json"}

        logger.debug(
            f"{request.name}: attempt {attempt} (waited {waited:.3f}s for rate budget)",
            extra={"endpoint": request.endpoint, "attempt": attempt, "params": request.params},
        )

        try:
            response = await self.transport.get(url, params, self.timeout)
        except asyncio.TimeoutError:
            return RequestOutcome(
                kind=OutcomeKind.TRANSIENT,
                error=f"timed out after {self.timeout:.0f}s",
                attempts=attempt,
            )
        except aiohttp.ClientError as e:
            return RequestOutcome(
                kind=OutcomeKind.TRANSIENT,
                error=self.redact(f"{type(e).__name__}: {e}"),
                attempts=attempt,
            )

        kind = classify_status(response.status)
        if kind == OutcomeKind.SUCCESS:
            return RequestOutcome(
                kind=kind, body=response.text, status_code=response.status, attempts=attempt
            )

        return RequestOutcome(
            kind=kind,
            status_code=response.status,
            error=self.redact(response.text[:200].strip()) or f"HTTP {response.status}",
            retry_after=parse_retry_after(response.headers)
            if kind == OutcomeKind.RATE_LIMITED
            else None,
            attempts=attempt,
        )

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def get_stats(self) -> dict[str, Any]:
        """Get client statistics"""
        with self._stats_lock:
            stats = dict(self._stats)
        stats["credential_rejected"] = self._credential_rejected
        stats["budget"] = self.budget.get_stats()
        return stats

    async def close(self) -> None:
        await self.transport.close()
