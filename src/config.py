"""
Configuration for the Steam tier monitor
Defaults, YAML file, environment overrides and validation

Load order (later wins):
1. Dataclass defaults
2. YAML file (monitor.yaml, or the path given to load_config)
3. Environment variables (STEAM_API_KEY, STEAM_ID64, STEAM_FAST_INTERVAL, ...)
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

API_KEY_PLACEHOLDER = "<your-steam-api-key-here>"
STEAM_ID_PLACEHOLDER = "<your-steam-id64-here>"
STEAM_ID64_PATTERN = re.compile(r"^7656119\d{10}$")
DEFAULT_CONFIG_PATH = Path("monitor.yaml")
MIN_TIER_INTERVAL = 1.0
ENRICHMENT_MODES = ("per_friend", "batch")


class ConfigError(Exception):
    """Configuration validation error"""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid configuration:\n  - " + "\n  - ".join(errors))


def _safe_float_env(name: str, default: float) -> float:
    """Parse a numeric env var, falling back to the default on bad input."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class MonitorConfig:
    """
    Monitor settings. Every field can be overridden by an environment variable.

    Intervals are seconds; rate-budget and pacing values are milliseconds.
    """

    # Credential
    api_key: str = field(default_factory=lambda: os.getenv("STEAM_API_KEY", API_KEY_PLACEHOLDER))
    steam_id64: str = field(default_factory=lambda: os.getenv("STEAM_ID64", STEAM_ID_PLACEHOLDER))

    # Remote API
    api_base_url: str = field(
        default_factory=lambda: os.getenv("STEAM_API_BASE_URL", "https://api.steampowered.com")
    )
    request_timeout_seconds: float = field(
        default_factory=lambda: _safe_float_env("STEAM_REQUEST_TIMEOUT", 30.0)
    )
    user_agent: str = "steam-tier-monitor/1.0"

    # Rate budget
    min_request_interval_ms: float = field(
        default_factory=lambda: _safe_float_env("STEAM_MIN_REQUEST_INTERVAL_MS", 1100)
    )
    backoff_base_ms: float = field(
        default_factory=lambda: _safe_float_env("STEAM_BACKOFF_BASE_MS", 1000)
    )
    backoff_max_ms: float = field(
        default_factory=lambda: _safe_float_env("STEAM_BACKOFF_MAX_MS", 30000)
    )

    # Tiers
    fast_interval_seconds: float = field(
        default_factory=lambda: _safe_float_env("STEAM_FAST_INTERVAL", 5.0)
    )
    medium_interval_seconds: float = field(
        default_factory=lambda: _safe_float_env("STEAM_MEDIUM_INTERVAL", 15.0)
    )
    slow_interval_seconds: float = field(
        default_factory=lambda: _safe_float_env("STEAM_SLOW_INTERVAL", 60.0)
    )
    tier_offsets_ms: tuple[float, float, float] = (0.0, 500.0, 1000.0)

    # Feature toggles
    enable_player: bool = field(default_factory=lambda: _bool_env("STEAM_ENABLE_PLAYER", True))
    enable_social: bool = field(default_factory=lambda: _bool_env("STEAM_ENABLE_SOCIAL", True))
    enable_library: bool = field(default_factory=lambda: _bool_env("STEAM_ENABLE_LIBRARY", True))
    enable_recent_games: bool = field(
        default_factory=lambda: _bool_env("STEAM_ENABLE_RECENT_GAMES", True)
    )
    enable_achievements: bool = field(
        default_factory=lambda: _bool_env("STEAM_ENABLE_ACHIEVEMENTS", True)
    )
    enable_current_game_achievements: bool = field(
        default_factory=lambda: _bool_env("STEAM_ENABLE_CURRENT_GAME_ACHIEVEMENTS", True)
    )

    # Social
    max_friends_enriched: int = field(
        default_factory=lambda: int(_safe_float_env("STEAM_MAX_FRIENDS", 10))
    )
    friend_enrichment: str = field(
        default_factory=lambda: os.getenv("STEAM_FRIEND_ENRICHMENT", "per_friend")
    )
    friend_pacing_ms: float = field(
        default_factory=lambda: _safe_float_env("STEAM_FRIEND_PACING_MS", 500)
    )

    # Library
    max_recent_games: int = 5

    # Lifecycle
    stop_timeout_seconds: float = 5.0

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("STEAM_LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("STEAM_LOG_DIR", "./logs"))
    json_logs: bool = field(default_factory=lambda: _bool_env("STEAM_JSON_LOGS", False))

    # ========== Derived values ==========

    @property
    def min_request_interval(self) -> float:
        return self.min_request_interval_ms / 1000.0

    @property
    def backoff_base(self) -> float:
        return self.backoff_base_ms / 1000.0

    @property
    def backoff_max(self) -> float:
        return self.backoff_max_ms / 1000.0

    @property
    def friend_pacing(self) -> float:
        return self.friend_pacing_ms / 1000.0

    @property
    def tier_offsets(self) -> tuple[float, float, float]:
        fast, medium, slow = self.tier_offsets_ms
        return fast / 1000.0, medium / 1000.0, slow / 1000.0

    def logging_config(self) -> dict[str, Any]:
        """Settings for services.logger.setup_logging()."""
        return {
            "log_dir": self.log_dir,
            "log_level": self.log_level,
            "console_level": self.log_level,
            "json_logs": self.json_logs,
        }

    # ========== Validation ==========

    def validate(self) -> "MonitorConfig":
        """
        Check every setting and report all problems at once.

        Raises:
            ConfigError: listing each invalid setting
        """
        errors = []

        if not self.api_key or self.api_key == API_KEY_PLACEHOLDER:
            errors.append("api_key is not set (STEAM_API_KEY)")
        if not self.steam_id64 or self.steam_id64 == STEAM_ID_PLACEHOLDER:
            errors.append("steam_id64 is not set (STEAM_ID64)")
        elif not STEAM_ID64_PATTERN.match(self.steam_id64):
            errors.append(
                f"steam_id64 {self.steam_id64!r} is not a 17 digit SteamID64 starting with 7656119"
            )

        for name in ("fast_interval_seconds", "medium_interval_seconds", "slow_interval_seconds"):
            value = getattr(self, name)
            if value < MIN_TIER_INTERVAL:
                errors.append(f"{name} must be at least {MIN_TIER_INTERVAL:g}s (got {value})")

        if len(self.tier_offsets_ms) != 3 or any(v < 0 for v in self.tier_offsets_ms):
            errors.append("tier_offsets_ms must be three non-negative values")

        for name in ("min_request_interval_ms", "backoff_base_ms", "friend_pacing_ms"):
            if getattr(self, name) < 0:
                errors.append(f"{name} must be >= 0")
        if self.backoff_max_ms < self.backoff_base_ms:
            errors.append("backoff_max_ms must be >= backoff_base_ms")
        if self.request_timeout_seconds <= 0:
            errors.append("request_timeout_seconds must be > 0")

        if self.friend_enrichment not in ENRICHMENT_MODES:
            errors.append(
                f"friend_enrichment must be one of {', '.join(ENRICHMENT_MODES)} "
                f"(got {self.friend_enrichment!r})"
            )
        if self.max_friends_enriched < 0:
            errors.append("max_friends_enriched must be >= 0 (0 = all friends)")
        if self.max_recent_games < 1:
            errors.append("max_recent_games must be >= 1")

        if errors:
            raise ConfigError(errors)
        return self

    def redacted(self) -> dict[str, Any]:
        """Settings as a dict with the API key masked, for logging."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        if self.api_key and self.api_key != API_KEY_PLACEHOLDER:
            values["api_key"] = "[REDACTED]"
        return values


# Env var -> field for values that YAML may have set
_ENV_OVERRIDES = {
    "STEAM_API_KEY": "api_key",
    "STEAM_ID64": "steam_id64",
    "STEAM_API_BASE_URL": "api_base_url",
    "STEAM_FAST_INTERVAL": "fast_interval_seconds",
    "STEAM_MEDIUM_INTERVAL": "medium_interval_seconds",
    "STEAM_SLOW_INTERVAL": "slow_interval_seconds",
    "STEAM_MIN_REQUEST_INTERVAL_MS": "min_request_interval_ms",
    "STEAM_MAX_FRIENDS": "max_friends_enriched",
    "STEAM_FRIEND_ENRICHMENT": "friend_enrichment",
    "STEAM_LOG_LEVEL": "log_level",
}


def _coerce(name: str, value: Any, current: Any) -> Any:
    if isinstance(current, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, tuple):
        return tuple(float(v) for v in value)
    return str(value)


def load_config(path: str | Path | None = None, validate: bool = True) -> MonitorConfig:
    """
    Build a MonitorConfig from defaults, an optional YAML file and the environment.

    Args:
        path: YAML file; when None, ./monitor.yaml is used if it exists
        validate: Run validate() before returning

    Raises:
        ConfigError: invalid values, or an explicitly given file is missing or unreadable
    """
    config = MonitorConfig()
    known = {f.name for f in fields(MonitorConfig)}

    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if config_path.exists():
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError([f"Cannot read {config_path}: {e}"]) from e
        if not isinstance(data, dict):
            raise ConfigError([f"{config_path} must contain a mapping at the top level"])

        errors = []
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            try:
                setattr(config, key, _coerce(key, value, getattr(config, key)))
            except (TypeError, ValueError):
                errors.append(f"{key}: invalid value {value!r}")
        if errors:
            raise ConfigError(errors)
        logger.info(f"Loaded config from {config_path}")
    elif path is not None:
        raise ConfigError([f"Config file not found: {config_path}"])

    # Environment wins over the file
    for env_var, key in _ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw:
            try:
                setattr(config, key, _coerce(key, raw, getattr(config, key)))
            except (TypeError, ValueError):
                logger.warning(f"Invalid {env_var}={raw!r}, keeping {getattr(config, key)!r}")

    return config.validate() if validate else config


def write_default_config(path: str | Path = DEFAULT_CONFIG_PATH) -> Path:
    """Write a commented YAML template with placeholder credentials."""
    path = Path(path)
    defaults = MonitorConfig(api_key=API_KEY_PLACEHOLDER, steam_id64=STEAM_ID_PLACEHOLDER)
    values = {f.name: getattr(defaults, f.name) for f in fields(defaults)}
    values["tier_offsets_ms"] = list(values["tier_offsets_ms"])

    header = (
        "# Steam tier monitor configuration\n"
        "# Get an API key at https://steamcommunity.com/dev/apikey\n"
        "# steam_id64 is the 17 digit id of the account to monitor\n"
        "# Environment variables (STEAM_API_KEY, STEAM_ID64, ...) override these values\n\n"
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(header)
        yaml.safe_dump(values, f, sort_keys=False)
    logger.info(f"Wrote default config to {path}")
    return path
