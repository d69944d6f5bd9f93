"""
SerpAPI-backed alternate provider.

Serves the same operations as the primary HTML path through SerpAPI's
Google Scholar engines and maps its JSON onto the canonical records, so
callers cannot tell which backend answered except for the ``provider`` tag.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from scholar_harvester.services.scholar.errors import InvalidInput, NetworkError
from scholar_harvester.services.scholar.models import (
    PROVIDER_SERPAPI,
    AuthorSearchResult,
    AuthorSnippet,
    CitationSearchResult,
    Publication,
    PublicationSearchResult,
    PublicationSource,
)
from scholar_harvester.services.scholar.text_normalize import clean_text, extract_email_domain, extract_year, strip_year
from scholar_harvester.services.scholar.urls import build_author_profile_url

logger = logging.getLogger('scholar_harvester.services.scholar.serpapi_provider')

SERPAPI_BASE_URL = "https://serpapi.com/search.json"
SCHOLAR_ENGINE = "google_scholar"
PROFILES_ENGINE = "google_scholar_profiles"
MAX_NUM = 20


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _venue_from_summary(summary: str) -> Optional[str]:
    """'A Smith, B Jones - Nature, 2019 - nature.com' -> 'Nature'."""
    parts = summary.split(" - ")
    if len(parts) < 2:
        return None
    return strip_year(parts[1]) or None


def map_organic_result(item: Any, source: PublicationSource) -> Optional[Publication]:
    """One organic_results entry -> Publication, or None when it has no title."""
    if not isinstance(item, Mapping):
        return None
    title = clean_text(item.get("title"))
    if not title:
        return None

    info = item.get("publication_info") or {}
    summary = clean_text(info.get("summary"))
    authors = [clean_text(a.get("name")) for a in info.get("authors") or [] if isinstance(a, Mapping) and a.get("name")]

    links = item.get("inline_links") or {}
    cited_by = links.get("cited_by") or {}
    versions = links.get("versions") or {}
    resources = item.get("resources") or []

    cites_id = cited_by.get("cites_id") or None
    return Publication(
        title=title,
        authors=authors,
        year=extract_year(summary, last=True),
        venue=_venue_from_summary(summary),
        abstract=clean_text(item.get("snippet")) or None,
        citation_count=_as_int(cited_by.get("total")),
        url=item.get("link") or None,
        pdf_url=(resources[0].get("link") if resources and isinstance(resources[0], Mapping) else None) or None,
        cluster_id=versions.get("cluster_id") or cites_id,
        cites_id=cites_id,
        versions_count=_as_int(versions.get("total")),
        cited_by_url=cited_by.get("link") or None,
        related_url=links.get("related_pages_link") or None,
        versions_url=versions.get("link") or None,
        source=source,
        provider=PROVIDER_SERPAPI,
    )


def map_profile(item: Any) -> Optional[AuthorSnippet]:
    if not isinstance(item, Mapping):
        return None
    scholar_id = item.get("author_id")
    name = clean_text(item.get("name"))
    if not scholar_id or not name:
        return None
    return AuthorSnippet(
        scholar_id=scholar_id,
        name=name,
        affiliation=clean_text(item.get("affiliations")) or None,
        email_domain=extract_email_domain(item.get("email")),
        interests=[clean_text(i.get("title")) for i in item.get("interests") or [] if isinstance(i, Mapping) and i.get("title")],
        citation_count=_as_int(item.get("cited_by")),
        url=build_author_profile_url(scholar_id, pagesize=None),
        image_url=item.get("thumbnail") or None,
        provider=PROVIDER_SERPAPI,
    )


class SerpApiProvider:
    def __init__(
        self,
        *,
        api_key: Optional[str],
        language: str = "en",
        timeout_seconds: float = 30.0,
        session: Optional[Any] = None,
        base_url: str = SERPAPI_BASE_URL,
    ):
        self._api_key = api_key
        self._language = language or "en"
        self._timeout = timeout_seconds
        self._session = session if session is not None else requests.Session()
        self._base_url = base_url

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self._api_key:
            raise InvalidInput("SerpAPI key not configured. Set SERPAPI_KEY environment variable.")

        query = {k: v for k, v in params.items() if v is not None and v != ""}
        query.setdefault("hl", self._language)
        query["api_key"] = self._api_key
        logger.info("SerpAPI request engine=%s", query.get("engine"))

        try:
            response = self._session.get(
                self._base_url,
                params=query,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise NetworkError(f"SerpAPI request failed: {exc}") from exc
        except ValueError as exc:
            raise NetworkError(f"SerpAPI returned a non-JSON body: {exc}") from exc

        if not isinstance(payload, dict):
            raise NetworkError("SerpAPI returned an unexpected payload shape")
        if payload.get("error"):
            raise NetworkError(f"SerpAPI error: {payload['error']}", details={"engine": query.get("engine")})
        return payload

    def _organic(self, payload: Dict[str, Any], source: PublicationSource) -> List[Publication]:
        items = payload.get("organic_results") or []
        if not isinstance(items, list):
            raise NetworkError("SerpAPI organic_results is not a list")
        publications = []
        for item in items:
            pub = map_organic_result(item, source)
            if pub is not None:
                publications.append(pub)
        return publications

    @staticmethod
    def _total(payload: Dict[str, Any]) -> Optional[int]:
        info = payload.get("search_information") or {}
        return _as_int(info.get("total_results")) if isinstance(info, Mapping) else None

    @staticmethod
    def _has_more(payload: Dict[str, Any], returned: int, requested: int) -> bool:
        pagination = payload.get("serpapi_pagination")
        if isinstance(pagination, Mapping):
            return bool(pagination.get("next"))
        return returned >= requested

    def _search(self, params: Dict[str, Any], *, num_results: int, start_index: int, source: PublicationSource):
        num = min(max(1, num_results), MAX_NUM)
        payload = self._request(dict(params, engine=SCHOLAR_ENGINE, num=num, start=start_index or None))
        publications = self._organic(payload, source)[:num]
        has_more = self._has_more(payload, len(publications), num)
        return payload, publications, has_more

    def search_publications(
        self,
        query: str,
        *,
        author: Optional[str] = None,
        year_start: Optional[int] = None,
        year_end: Optional[int] = None,
        num_results: int = 10,
        start_index: int = 0,
        sort_by: str = "relevance",
        filters: Optional[Dict[str, Any]] = None,
    ) -> PublicationSearchResult:
        q = f'author:"{author}" {query}'.strip() if author else query
        params = {
            "q": q,
            "as_ylo": year_start,
            "as_yhi": year_end,
            "scisbd": 1 if sort_by == "date" else None,
        }
        payload, publications, has_more = self._search(
            params, num_results=num_results, start_index=start_index, source=PublicationSource.PUBLICATION_SEARCH
        )
        return PublicationSearchResult(
            query=query,
            publications=publications,
            filters=dict(filters or {}),
            total_results=self._total(payload),
            has_more=has_more,
            next_start_index=start_index + len(publications) if has_more else None,
            provider=PROVIDER_SERPAPI,
        )

    def advanced_search(
        self,
        query: str,
        *,
        author: Optional[str] = None,
        source: Optional[str] = None,
        year_start: Optional[int] = None,
        year_end: Optional[int] = None,
        language: Optional[str] = None,
        include_patents: bool = False,
        review_articles_only: bool = False,
        num_results: int = 10,
        sort_by: str = "relevance",
        filters: Optional[Dict[str, Any]] = None,
    ) -> PublicationSearchResult:
        q = query
        if author:
            q = f'author:"{author}" {q}'.strip()
        if source:
            q = f'{q} source:"{source}"'.strip()
        params = {
            "q": q,
            "as_ylo": year_start,
            "as_yhi": year_end,
            "lr": f"lang_{language}" if language else None,
            "as_sdt": "0,5" if not include_patents else None,
            "as_rr": 1 if review_articles_only else None,
            "scisbd": 1 if sort_by == "date" else None,
        }
        payload, publications, has_more = self._search(
            params, num_results=num_results, start_index=0, source=PublicationSource.ADVANCED_SEARCH
        )
        return PublicationSearchResult(
            query=query,
            publications=publications,
            filters=dict(filters or {}),
            total_results=self._total(payload),
            has_more=has_more,
            next_start_index=len(publications) if has_more else None,
            provider=PROVIDER_SERPAPI,
        )

    def search_authors(self, query: str, *, organization: Optional[str] = None, num_results: int = 10) -> AuthorSearchResult:
        mauthors = f"{query} {organization}".strip() if organization else query
        payload = self._request({"engine": PROFILES_ENGINE, "mauthors": mauthors})
        items = payload.get("profiles") or []
        if not isinstance(items, list):
            raise NetworkError("SerpAPI profiles is not a list")

        authors = [a for a in (map_profile(item) for item in items) if a is not None]
        num = min(max(1, num_results), MAX_NUM)
        return AuthorSearchResult(
            query=query,
            authors=authors[:num],
            total_results=len(authors),
            has_more=self._has_more(payload, len(authors), num) or len(authors) > num,
            provider=PROVIDER_SERPAPI,
        )

    def get_citations(
        self,
        cluster_id: str,
        *,
        num_results: int = 10,
        start_index: int = 0,
        sort_by: str = "relevance",
    ) -> CitationSearchResult:
        params = {"cites": cluster_id, "scisbd": 1 if sort_by == "date" else None}
        payload, citations, has_more = self._search(
            params, num_results=num_results, start_index=start_index, source=PublicationSource.CITATION
        )
        total = self._total(payload)
        if total is None:
            total = start_index + len(citations)
        return CitationSearchResult(
            cluster_id=cluster_id,
            citations=citations,
            total_citations=total,
            has_more=has_more,
            next_start_index=start_index + len(citations) if has_more else None,
            provider=PROVIDER_SERPAPI,
        )

    def get_related_articles(self, cluster_id: str, *, num_results: int = 10) -> PublicationSearchResult:
        query = f"related:{cluster_id}:scholar.google.com/"
        payload, publications, has_more = self._search(
            {"q": query}, num_results=num_results, start_index=0, source=PublicationSource.RELATED
        )
        return PublicationSearchResult(
            query=query,
            publications=publications,
            filters={"cluster_id": cluster_id},
            total_results=self._total(payload),
            has_more=has_more,
            next_start_index=len(publications) if has_more else None,
            provider=PROVIDER_SERPAPI,
        )

    def get_all_versions(self, cluster_id: str, *, num_results: int = 10) -> PublicationSearchResult:
        payload, publications, has_more = self._search(
            {"cluster": cluster_id}, num_results=num_results, start_index=0, source=PublicationSource.VERSION
        )
        return PublicationSearchResult(
            query=f"cluster:{cluster_id}",
            publications=publications,
            filters={"cluster_id": cluster_id},
            total_results=self._total(payload),
            has_more=has_more,
            next_start_index=len(publications) if has_more else None,
            provider=PROVIDER_SERPAPI,
        )
