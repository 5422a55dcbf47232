"""
Request descriptor and per-call outcome for the rate limited client
"""

from dataclasses import dataclass, field
from typing import Any

from models.enums import OutcomeKind


@dataclass(frozen=True)
class ApiRequest:
    """
    Opaque descriptor of one remote call.

    Fields:
        endpoint: Path below the API base URL, e.g. "ISteamUser/GetFriendList/v1"
        params: Query parameters, excluding the credential
        label: Short name used in log lines
    """

    endpoint: str
    params: dict[str, Any] = field(default_factory=dict)
    label: str = ""

    @property
    def name(self) -> str:
        return self.label or self.endpoint


@dataclass(frozen=True)
class RequestOutcome:
    """
    Result of one client call after rate limiting and retries.

    On SUCCESS, body holds the raw response text. Failures carry the last
    HTTP status (None for transport errors), an error message and, for
    rate limited responses, the server's Retry-After hint in seconds.
    """

    kind: OutcomeKind
    body: str = ""
    status_code: int | None = None
    error: str | None = None
    retry_after: float | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @property
    def is_fatal(self) -> bool:
        return self.kind == OutcomeKind.FATAL

    def describe(self) -> str:
        if self.ok:
            return "ok"
        status = f"HTTP {self.status_code}" if self.status_code is not None else "no response"
        return f"{self.kind.value} ({status}): {self.error or 'unknown error'}"
