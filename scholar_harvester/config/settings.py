"""
Harvester settings.

All knobs come from the environment (optionally via .env files). Values that
fail to parse fall back to their defaults; numeric values are clamped into a
safe range rather than rejected.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from scholar_harvester.config.env_loader import load_environment_variables

logger = logging.getLogger('scholar_harvester.config.settings')

MAX_RESULTS_PER_OPERATION = 20
PAGE_SIZE = 10


def _env_str(env: Mapping[str, str], *names: str, default: Optional[str] = None) -> Optional[str]:
    for name in names:
        value = (env.get(name) or "").strip()
        if value:
            return value
    return default


def _env_int(env: Mapping[str, str], name: str, default: int, *, lo: int, hi: int) -> int:
    raw = env.get(name)
    value = default
    if raw is not None and str(raw).strip():
        try:
            value = int(float(raw))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
            value = default
    return max(lo, min(int(value), hi))


def _env_float(env: Mapping[str, str], name: str, default: float, *, lo: float, hi: float) -> float:
    raw = env.get(name)
    value = default
    if raw is not None and str(raw).strip():
        try:
            value = float(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
            value = default
    return max(lo, min(float(value), hi))


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not str(raw).strip():
        return default
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ScholarSettings:
    # Pacing
    min_delay_seconds: float = 1.0
    max_delay_seconds: float = 5.0
    max_retries: int = 3
    backoff_multiplier: float = 2.0
    page_delay_seconds: float = 1.0

    # Requests
    request_timeout_seconds: float = 30.0
    max_redirects: int = 5
    proxy_url: Optional[str] = None
    language: str = "en"
    rotate_user_agent: bool = True

    # Result cache
    cache_enabled: bool = True
    cache_ttl_seconds: float = 3600.0
    cache_max_items: int = 512
    cache_sweep_interval_seconds: float = 60.0

    # Alternate provider (SerpAPI)
    serpapi_key: Optional[str] = None
    use_serpapi_fallback: bool = False
    serpapi_timeout_seconds: float = 30.0

    @property
    def alternate_enabled(self) -> bool:
        return bool(self.serpapi_key) and self.use_serpapi_fallback

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, *, load_env_files: bool = True) -> "ScholarSettings":
        if environ is None:
            if load_env_files:
                load_environment_variables()
            environ = os.environ

        min_delay_ms = _env_int(environ, "SCHOLAR_RATE_LIMIT_MS", 1000, lo=0, hi=600_000)
        jitter_ms = 0
        if _env_bool(environ, "SCHOLAR_ENABLE_JITTER", True):
            jitter_ms = _env_int(environ, "SCHOLAR_JITTER_MAX_MS", 4000, lo=0, hi=600_000)

        return cls(
            min_delay_seconds=min_delay_ms / 1000.0,
            max_delay_seconds=(min_delay_ms + jitter_ms) / 1000.0,
            max_retries=_env_int(environ, "SCHOLAR_MAX_RETRIES", 3, lo=0, hi=10),
            backoff_multiplier=_env_float(environ, "SCHOLAR_BACKOFF_MULTIPLIER", 2.0, lo=1.0, hi=10.0),
            page_delay_seconds=_env_int(environ, "SCHOLAR_PAGE_DELAY_MS", 1000, lo=0, hi=60_000) / 1000.0,
            request_timeout_seconds=_env_int(environ, "SCHOLAR_REQUEST_TIMEOUT", 30_000, lo=1000, hi=120_000) / 1000.0,
            max_redirects=_env_int(environ, "SCHOLAR_MAX_REDIRECTS", 5, lo=0, hi=30),
            proxy_url=_env_str(environ, "SCHOLAR_PROXY_URL", "HTTPS_PROXY", "HTTP_PROXY"),
            language=_env_str(environ, "SCHOLAR_LANGUAGE", default="en") or "en",
            rotate_user_agent=_env_bool(environ, "SCHOLAR_ROTATE_USER_AGENT", True),
            cache_enabled=_env_bool(environ, "SCHOLAR_CACHE_ENABLED", True),
            cache_ttl_seconds=_env_int(environ, "SCHOLAR_CACHE_TTL_MS", 3_600_000, lo=0, hi=7 * 86_400_000) / 1000.0,
            cache_max_items=_env_int(environ, "SCHOLAR_CACHE_MAX_ITEMS", 512, lo=0, hi=100_000),
            cache_sweep_interval_seconds=(
                _env_int(environ, "SCHOLAR_CACHE_SWEEP_INTERVAL_MS", 60_000, lo=1000, hi=3_600_000) / 1000.0
            ),
            serpapi_key=_env_str(environ, "SERPAPI_KEY", "SERP_API_KEY"),
            use_serpapi_fallback=_env_bool(environ, "SCHOLAR_USE_SERPAPI_FALLBACK", False),
        )

    def validate(self) -> List[str]:
        """Human-readable warnings for settings likely to get the client blocked."""
        warnings: List[str] = []
        if self.min_delay_seconds < 1.0:
            warnings.append("Rate limit should be at least 1000ms to avoid blocking")
        if self.max_retries < 1:
            warnings.append("Max retries should be at least 1")
        if self.request_timeout_seconds < 5.0:
            warnings.append("Request timeout should be at least 5000ms")
        if self.use_serpapi_fallback and not self.serpapi_key:
            warnings.append("SCHOLAR_USE_SERPAPI_FALLBACK is set but SERPAPI_KEY is missing; fallback disabled")
        return warnings
