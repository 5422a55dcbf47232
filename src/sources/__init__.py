"""
Sources module - Steam Web API access and domain collectors.
"""

from sources.achievements_collector import AchievementsCollector
from sources.domain_collector import CollectContext, CollectorError, DomainCollector
from sources.http_transport import HttpResponse, HttpTransport
from sources.library_collector import LibraryCollector
from sources.player_collector import PlayerCollector

# Rate limiting and retries
from sources.rate_budget import RateBudget
from sources.rate_limited_client import FatalApiError, RateLimitedClient, SteamApiError
from sources.social_collector import SocialCollector
from sources.steam_api import SteamApi, is_valid_steam_id64

__all__ = [
    "HttpResponse",
    "HttpTransport",
    "RateBudget",
    "RateLimitedClient",
    "SteamApiError",
    "FatalApiError",
    "SteamApi",
    "is_valid_steam_id64",
    # Collectors
    "CollectContext",
    "CollectorError",
    "DomainCollector",
    "PlayerCollector",
    "SocialCollector",
    "LibraryCollector",
    "AchievementsCollector",
]
