"""
HTTP fetching for Google Scholar pages.

Goals:
- one place for pacing, retry/backoff and timeout handling
- browser-like request identity (UA pool, language, referer)
- classify bot-detection pages so the caller can fail over instead of retrying
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import requests

from scholar_harvester.services.scholar.cancel import raise_if_cancelled, sleep_with_cancel
from scholar_harvester.services.scholar.errors import Blocked, NetworkError, NotFound, RateLimited
from scholar_harvester.services.scholar.extractor import has_scholar_content
from scholar_harvester.services.scholar.pacer import Pacer

logger = logging.getLogger('scholar_harvester.services.scholar.http_fetcher')

DEFAULT_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

# Lower-cased substrings; soft indicators are checked before hard ones.
SOFT_BLOCK_INDICATORS = (
    "unusual traffic",
    "automated queries",
    "automated requests",
    "systems have detected",
    "not a robot",
    "captcha",
    "sorry, we can't verify",
)

HARD_BLOCK_INDICATORS = (
    "access denied",
    "403 forbidden",
    "error 403",
    "your client does not have permission",
)

# Markup of the /sorry/ interstitial itself.
CHALLENGE_MARKERS = (
    'id="captcha-form"',
    "g-recaptcha",
    "/sorry/index",
)

RETRYABLE_STATUS =frozenset({500, 502, 503, 504})


def is_soft_blocked(html: Optional[str]) -> bool:
    """
    Challenge markup always counts. The phrases only count on a page without
    Scholar content, since a search for "captcha" echoes them in titles.
    """
    lowered = (html or "").lower()
    if any(marker in lowered for marker in CHALLENGE_MARKERS):
        return True
    if not any(indicator in lowered for indicator in SOFT_BLOCK_INDICATORS):
        return False
    return not has_scholar_content(html)


def is_hard_blocked(html: Optional[str]) -> bool:
    lowered = (html or "").lower()
    if not any(indicator in lowered for indicator in HARD_BLOCK_INDICATORS):
        return False
    return not has_scholar_content(html)


class UserAgentPool:
    """Fixed pool of browser identities; rotation shares one index across threads."""

    def __init__(self, user_agents: Sequence[str] = DEFAULT_USER_AGENTS, *, rng: Optional[random.Random] = None):
        self._agents = tuple(user_agents) or DEFAULT_USER_AGENTS
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._index = 0

    def __len__(self) -> int:
        return len(self._agents)

    def rotate(self) -> str:
        with self._lock:
            self._index = (self._index + 1) % len(self._agents)
            return self._agents[self._index]

    def pick_random(self) -> str:
        return self._rng.choice(self._agents)

    def next(self, *, rotate: bool = True) -> str:
        return self.rotate() if rotate else self.pick_random()


@dataclass(frozen=True)
class FetchPolicy:
    max_retries: int = 3
    timeout_seconds: float = 30.0
    max_redirects: int = 5
    proxy_url: Optional[str] = None
    language: str = "en"
    rotate_user_agent: bool = True

    referers: Sequence[str] = field(
        default_factory=lambda: (
            "https://scholar.google.com/",
            "https://www.google.com/",
        )
    )

    @classmethod
    def from_settings(cls, settings: Any) -> "FetchPolicy":
        return cls(
            max_retries=settings.max_retries,
            timeout_seconds=settings.request_timeout_seconds,
            max_redirects=settings.max_redirects,
            proxy_url=settings.proxy_url,
            language=settings.language,
            rotate_user_agent=settings.rotate_user_agent,
        )


def _accept_language(language: str) -> str:
    lang = (language or "en").strip()
    if lang == "en":
        return "en-US,en;q=0.9"
    return f"{lang},en;q=0.8"


class ScholarFetchClient:
    """Fetches primary-source pages: pacer before every attempt, classified failures."""

    def __init__(
        self,
        *,
        pacer: Pacer,
        policy: Optional[FetchPolicy] = None,
        session: Optional[Any] = None,
        user_agents: Optional[UserAgentPool] = None,
        rng: Optional[random.Random] = None,
    ):
        self._pacer = pacer
        self._policy = policy or FetchPolicy()
        self._rng = rng or random.Random()
        self._user_agents = user_agents or UserAgentPool(rng=self._rng)
        self._session = session if session is not None else requests.Session()
        if hasattr(self._session, "max_redirects"):
            self._session.max_redirects = self._policy.max_redirects
        self._proxies: Optional[Dict[str, str]] = None
        if self._policy.proxy_url:
            self._proxies = {"http": self._policy.proxy_url, "https": self._policy.proxy_url}

    @property
    def pacer(self) -> Pacer:
        return self._pacer

    def _pick_headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": self._user_agents.next(rotate=self._policy.rotate_user_agent),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": _accept_language(self._policy.language),
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Referer": self._rng.choice(list(self._policy.referers)) if self._policy.referers else "",
        }
        return {k: v for k, v in headers.items() if v}

    def fetch(self, url: str, cancel_event: Optional[Any] = None) -> str:
        """
        Fetch one page and return its HTML.

        Raises RateLimited / Blocked on bot-detection signals (never retried
        here), NotFound on 404, NetworkError once transport failures and 5xx
        responses have used up the retry budget.
        """
        max_retries = max(0, int(self._policy.max_retries))
        last_error: Optional[str] = None

        for attempt in range(max_retries + 1):
            raise_if_cancelled(cancel_event)
            self._pacer.acquire(cancel_event)
            raise_if_cancelled(cancel_event)

            try:
                resp = self._session.get(
                    url,
                    headers=self._pick_headers(),
                    timeout=self._policy.timeout_seconds,
                    proxies=self._proxies,
                    allow_redirects=True,
                )
            except requests.RequestException as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                status = int(getattr(resp, "status_code", 0) or 0)
                body = getattr(resp, "text", "") or ""
                if status not in RETRYABLE_STATUS:
                    return self._classify(url, status, body)
                last_error = f"HTTP {status}"

            raise_if_cancelled(cancel_event)
            if attempt < max_retries:
                delay = self._pacer.backoff_delay(attempt)
                logger.warning(
                    "Request failed (%s), retrying in %.1fs (attempt %s/%s): %s",
                    last_error,
                    delay,
                    attempt + 1,
                    max_retries,
                    url,
                )
                sleep_with_cancel(delay, cancel_event)

        logger.error("Giving up on %s after %s attempts: %s", url, max_retries + 1, last_error)
        raise NetworkError(f"Network error: {last_error}", details={"url": url, "attempts": max_retries + 1})

    def _classify(self, url: str, status: int, body: str) -> str:
        details = {"url": url, "status": status}
        if status == 429 or is_soft_blocked(body):
            logger.warning("Soft block detected (status %s): %s", status, url)
            raise RateLimited("Rate limited by Google Scholar. Please try again later.", details=details)
        if status == 403 or is_hard_blocked(body):
            logger.warning("Hard block detected (status %s): %s", status, url)
            raise Blocked("Access blocked by Google Scholar.", details=details)
        if status == 404:
            raise NotFound("Resource not found on Google Scholar.", details=details)
        if status < 200 or status >= 300:
            raise NetworkError(f"Unexpected HTTP status {status}", details=details)
        return body
