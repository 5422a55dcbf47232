"""
Data models for the Steam tier monitor
"""

from .api_request import ApiRequest, RequestOutcome
from .enums import Domain, OutcomeKind, PersonaState, SnapshotStatus, Tier
from .session_record import SessionRecord

# Per-domain and merged snapshots
from .snapshots import (
    AchievementsSnapshot,
    CompositeSnapshot,
    DomainSnapshot,
    FriendActivity,
    GameSummary,
    LibrarySnapshot,
    PlayerSnapshot,
    SocialSnapshot,
)

__all__ = [
    "ApiRequest",
    "RequestOutcome",
    "Domain",
    "OutcomeKind",
    "PersonaState",
    "SnapshotStatus",
    "Tier",
    "SessionRecord",
    # Snapshots
    "DomainSnapshot",
    "PlayerSnapshot",
    "FriendActivity",
    "SocialSnapshot",
    "GameSummary",
    "LibrarySnapshot",
    "AchievementsSnapshot",
    "CompositeSnapshot",
]
