# vine_ladder/config.py
"""
Configuration for the vine ladder client.

This module centralizes all tunable settings (backend URL and key, display
timezone, request timeout, cache TTLs, list limits and role names).
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import List


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, returning default on missing/invalid values."""
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    """
    Read a boolean-ish environment variable.

    Treats these as false: 0, false, no, off
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def _env_list(name: str, default: List[str]) -> List[str]:
    """
    Read a comma-delimited string list from the environment.

    Example:
      COORDINATOR_ROLE_NAMES="coordinator,admin"
    """
    raw = os.getenv(name)
    if not raw:
        return default
    out = [x.strip() for x in raw.split(",") if x.strip()]
    return out or default


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable app configuration.

    Built once by the app factory and passed explicitly into services.
    """

    # Backend
    supabase_url: str = os.getenv("SUPABASE_URL", "http://localhost:54321")
    supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    request_timeout_seconds: int = _env_int("REQUEST_TIMEOUT_SECONDS", 10)

    # Display
    tz: str = os.getenv("TZ", "America/Chicago")

    # Cache controls
    standings_cache_ttl_seconds: int = _env_int("STANDINGS_CACHE_TTL_SECONDS", 60)
    roster_cache_ttl_seconds: int = _env_int("ROSTER_CACHE_TTL_SECONDS", 300)

    # Board defaults
    limit_upcoming: int = _env_int("LIMIT_UPCOMING", 20)
    limit_recent: int = _env_int("LIMIT_RECENT", 20)
    include_standings: bool = _env_bool("INCLUDE_STANDINGS", True)

    # Secondary lookups (team rosters per doubles challenge) run on a small pool
    enrichment_workers: int = _env_int("ENRICHMENT_WORKERS", 4)

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    coordinator_role_names: List[str] = field(default_factory=lambda: ["coordinator"])

    def __post_init__(self):
        """
        Override defaults from optional env vars and normalize values.

        Supported env options:
          - COORDINATOR_ROLE_NAMES (comma list)
        """
        # dataclass frozen => use object.__setattr__
        object.__setattr__(
            self,
            "coordinator_role_names",
            [r.lower() for r in _env_list("COORDINATOR_ROLE_NAMES", list(self.coordinator_role_names))],
        )
        object.__setattr__(self, "supabase_url", self.supabase_url.rstrip("/"))
        if self.enrichment_workers < 1:
            object.__setattr__(self, "enrichment_workers", 1)
