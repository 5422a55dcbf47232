"""
Domain Collector base class

A collector fetches one slice of remote state and maps it to a typed
DomainSnapshot. collect() never raises to its caller: remote failures,
empty or malformed bodies and unexpected exceptions all come back as a
snapshot with the error marker set and default field values. Only
cancellation propagates.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

from pydantic import BaseModel

from models.api_request import RequestOutcome
from models.enums import Domain, OutcomeKind, Tier
from models.snapshots import CompositeSnapshot, DomainSnapshot, utcnow
from sources.steam_api import SteamApi

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class CollectContext:
    """What a collector knows about the cycle it runs in."""

    tier: Tier
    cycle: int = 0
    now: datetime | None = None
    latest: CompositeSnapshot | None = None

    @property
    def captured_at(self) -> datetime:
        return self.now or utcnow()


class CollectorError(Exception):
    """Abandons a collection run with a domain-level error."""

    def __init__(self, message: str, kind: OutcomeKind | None = None):
        super().__init__(message)
        self.kind = kind


class DomainCollector:
    """Base class; subclasses implement _collect()."""

    domain: Domain
    snapshot_type: type[DomainSnapshot]

    def __init__(self, api: SteamApi):
        self.api = api
        self.runs = 0
        self.failures = 0

    @property
    def name(self) -> str:
        return self.domain.value

    async def collect(self, context: CollectContext) -> DomainSnapshot:
        self.runs += 1
        started = time.monotonic()
        try:
            snapshot = await self._collect(context)
        except asyncio.CancelledError:
            raise
        except CollectorError as e:
            snapshot = self._failed(context, str(e), e.kind)
            logger.warning(f"{self.name} collection failed: {e}", extra={"domain": self.name})
        except ValueError as e:
            # pydantic.ValidationError is a ValueError
            snapshot = self._failed(context, f"Malformed response: {_first_line(e)}")
            logger.warning(
                f"{self.name} collection got a malformed response: {_first_line(e)}",
                extra={"domain": self.name},
            )
        except Exception as e:
            snapshot = self._failed(context, f"Unexpected error: {e}")
            logger.error(
                f"{self.name} collection raised unexpectedly: {e}",
                exc_info=True,
                extra={"domain": self.name},
            )

        logger.debug(
            f"{self.name} collected in {(time.monotonic() - started) * 1000:.0f}ms"
            f"{' (error)' if snapshot.has_error else ''}",
            extra={"domain": self.name, "tier": context.tier.value},
        )
        return snapshot

    async def _collect(self, context: CollectContext) -> DomainSnapshot:
        raise NotImplementedError

    def _failed(
        self, context: CollectContext, message: str, kind: OutcomeKind | None = None
    ) -> DomainSnapshot:
        self.failures += 1
        return self.snapshot_type.failed(message, context.captured_at, kind)

    @staticmethod
    def decode(outcome: RequestOutcome, model: type[M], what: str) -> M:
        """
        Turn a call outcome into a parsed payload.

        Raises:
            CollectorError: the call failed or returned an empty body
            pydantic.ValidationError: the body does not match the schema
        """
        if not outcome.ok:
            raise CollectorError(f"{what} request failed: {outcome.describe()}", outcome.kind)
        if not outcome.body.strip():
            raise CollectorError(f"{what} returned an empty body")
        return model.model_validate_json(outcome.body)


def _first_line(error: Exception) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__
