"""
URL builders for the Google Scholar endpoints the harvester reads.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode, urljoin

SCHOLAR_BASE_URL = "https://scholar.google.com"


def _build(path: str, params: list) -> str:
    query = urlencode([(k, v) for k, v in params if v is not None and v != ""])
    return f"{SCHOLAR_BASE_URL}{path}?{query}"


def absolute_url(href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    return urljoin(SCHOLAR_BASE_URL + "/", href)


def build_search_url(
    *,
    query: str,
    author: Optional[str] = None,
    year_start: Optional[int] = None,
    year_end: Optional[int] = None,
    start: int = 0,
    sort_by: str = "relevance",
    include_patents: Optional[bool] = None,
    include_citations: Optional[bool] = None,
    language: str = "en",
) -> str:
    q = query or ""
    if author:
        q = f'author:"{author}" {q}'.strip()
    params = [
        ("q", q),
        ("as_ylo", year_start),
        ("as_yhi", year_end),
        ("start", start or None),
        ("scisbd", 1 if sort_by == "date" else None),
        ("hl", language or "en"),
        ("as_sdt", "0,5" if include_patents is False else None),
        ("as_vis", 1 if include_citations is False else None),
    ]
    return _build("/scholar", params)


def build_advanced_search_url(
    *,
    query: str,
    author: Optional[str] = None,
    source: Optional[str] = None,
    year_start: Optional[int] = None,
    year_end: Optional[int] = None,
    language: Optional[str] = None,
    include_patents: bool = False,
    review_articles_only: bool = False,
    start: int = 0,
    sort_by: str = "relevance",
    interface_language: str = "en",
) -> str:
    q = query or ""
    if author:
        q = f'author:"{author}" {q}'.strip()
    params = [
        ("q", q),
        ("as_publication", source),
        ("as_ylo", year_start),
        ("as_yhi", year_end),
        ("lr", f"lang_{language}" if language else None),
        ("as_sdt", "0,5" if not include_patents else None),
        ("as_rr", 1 if review_articles_only else None),
        ("start", start or None),
        ("scisbd", 1 if sort_by == "date" else None),
        ("hl", interface_language or "en"),
    ]
    return _build("/scholar", params)


def build_author_search_url(*, query: str, organization: Optional[str] = None, language: str = "en") -> str:
    mauthors = query
    if organization:
        mauthors = f"{query} label:{organization}"
    return _build("/citations", [("view_op", "search_authors"), ("mauthors", mauthors), ("hl", language or "en")])


def build_author_profile_url(scholar_id: str, *, language: str = "en", pagesize: int = 100) -> str:
    return _build("/citations", [("user", scholar_id), ("hl", language or "en"), ("pagesize", pagesize)])


def build_citation_url(*, cluster_id: str, start: int = 0, sort_by: str = "relevance", language: str = "en") -> str:
    params = [
        ("cites", cluster_id),
        ("hl", language or "en"),
        ("start", start or None),
        ("scisbd", 1 if sort_by == "date" else None),
    ]
    return _build("/scholar", params)


def build_related_url(*, cluster_id: str, start: int = 0, language: str = "en") -> str:
    params = [
        ("q", f"related:{cluster_id}:scholar.google.com/"),
        ("hl", language or "en"),
        ("start", start or None),
    ]
    return _build("/scholar", params)


def build_versions_url(*, cluster_id: str, start: int = 0, language: str = "en") -> str:
    params = [
        ("cluster", cluster_id),
        ("hl", language or "en"),
        ("start", start or None),
    ]
    return _build("/scholar", params)
