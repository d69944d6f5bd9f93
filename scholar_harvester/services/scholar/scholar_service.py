"""
Scholar harvesting service.

Entry point for the dispatch layer: validates input, answers from the result
cache when it can, and otherwise runs the operation through the provider
selector (Google Scholar HTML first, SerpAPI once Scholar starts blocking).
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from scholar_harvester.config.settings import MAX_RESULTS_PER_OPERATION, PAGE_SIZE, ScholarSettings
from scholar_harvester.services.scholar.cancel import raise_if_cancelled, sleep_with_cancel
from scholar_harvester.services.scholar.errors import InvalidInput, NotFound
from scholar_harvester.services.scholar.extractor import (
    extract_author_profile,
    extract_author_snippets,
    extract_publications,
    next_author_page_url,
    parse_page,
)
from scholar_harvester.services.scholar.http_fetcher import FetchPolicy, ScholarFetchClient
from scholar_harvester.services.scholar.models import (
    PROVIDER_SCHOLAR,
    AuthorProfile,
    AuthorSearchResult,
    AuthorSnippet,
    CitationSearchResult,
    PublicationSearchResult,
    PublicationSource,
)
from scholar_harvester.services.scholar.pacer import Pacer
from scholar_harvester.services.scholar.paginator import PageCollection, Paginator
from scholar_harvester.services.scholar.provider_selector import ProviderSelector
from scholar_harvester.services.scholar.result_cache import ResultCache, make_key
from scholar_harvester.services.scholar.serpapi_provider import SerpApiProvider
from scholar_harvester.services.scholar.urls import (
    build_advanced_search_url,
    build_author_profile_url,
    build_author_search_url,
    build_citation_url,
    build_related_url,
    build_search_url,
    build_versions_url,
)
from scholar_harvester.utils.logging_config import operation_context

logger = logging.getLogger('scholar_harvester.services.scholar.scholar_service')

SORT_ORDERS = ("relevance", "date")

_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def _require_text(value: Any, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{label} is required")
    return value.strip()


def _require_id(value: Any, label: str) -> str:
    text = _require_text(value, label)
    if not _ID_RE.match(text):
        raise InvalidInput(f"{label} has an invalid format: {text!r}")
    return text


def _optional_text(value: Any, label: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput(f"{label} must be a string")
    return value.strip() or None


def _num_results(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"num_results must be an integer, got {value!r}")
    if value < 1:
        raise InvalidInput("num_results must be at least 1")
    if value > MAX_RESULTS_PER_OPERATION:
        logger.debug("Capping num_results %s to %s", value, MAX_RESULTS_PER_OPERATION)
        return MAX_RESULTS_PER_OPERATION
    return value


def _start_index(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f"start_index must be a non-negative integer, got {value!r}")
    return value


def _sort_by(value: Any) -> str:
    if value not in SORT_ORDERS:
        raise InvalidInput(f"sort_by must be one of {', '.join(SORT_ORDERS)}, got {value!r}")
    return value


def _year_range(year_start: Any, year_end: Any) -> None:
    for label, year in (("year_start", year_start), ("year_end", year_end)):
        if year is None:
            continue
        if isinstance(year, bool) or not isinstance(year, int):
            raise InvalidInput(f"{label} must be an integer year, got {year!r}")
    if year_start is not None and year_end is not None and year_start > year_end:
        raise InvalidInput(f"year_start ({year_start}) is after year_end ({year_end})")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ScholarService:
    def __init__(
        self,
        settings: Optional[ScholarSettings] = None,
        *,
        pacer: Optional[Pacer] = None,
        fetch_client: Optional[ScholarFetchClient] = None,
        paginator: Optional[Paginator] = None,
        selector: Optional[ProviderSelector] = None,
        cache: Optional[ResultCache] = None,
        serpapi: Optional[SerpApiProvider] = None,
        start_sweeper: bool = True,
    ):
        self.settings = settings or ScholarSettings.from_env()
        for warning in self.settings.validate():
            logger.warning("Configuration: %s", warning)

        self.pacer = pacer or Pacer.from_settings(self.settings)
        self.fetch_client = fetch_client or ScholarFetchClient(
            pacer=self.pacer,
            policy=FetchPolicy.from_settings(self.settings),
        )
        self.paginator = paginator or Paginator(
            self.fetch_client,
            page_size=PAGE_SIZE,
            page_delay_seconds=self.settings.page_delay_seconds,
        )
        if serpapi is None and self.settings.alternate_enabled:
            serpapi = SerpApiProvider(
                api_key=self.settings.serpapi_key,
                language=self.settings.language,
                timeout_seconds=self.settings.serpapi_timeout_seconds,
            )
        self.serpapi = serpapi
        self.selector = selector or ProviderSelector(alternate_enabled=self.serpapi is not None)
        self.cache = cache or ResultCache.from_settings(self.settings)
        if start_sweeper:
            self.cache.start_sweeper()

    def close(self) -> None:
        self.cache.stop_sweeper()

    def __enter__(self) -> "ScholarService":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -- plumbing ----------------------------------------------------------

    def _alternate(self, call: Callable[[SerpApiProvider], Any]) -> Optional[Callable[[], Any]]:
        if self.serpapi is None:
            return None
        serpapi = self.serpapi
        return lambda: call(serpapi)

    def _run(
        self,
        operation: str,
        params: Dict[str, Any],
        primary: Callable[[], Any],
        alternate: Optional[Callable[[], Any]],
        cancel_event: Optional[Any],
    ) -> Any:
        with operation_context(operation):
            raise_if_cancelled(cancel_event)
            key = make_key(operation, params)
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Cache hit for %s", operation)
                return copy.deepcopy(cached)

            result = self.selector.run(operation, primary, alternate)
            # Cached entries are never shared with callers.
            self.cache.set(key, copy.deepcopy(result))
            return result

    def _collect(
        self,
        build_url: Callable[[int], str],
        source: PublicationSource,
        num_results: int,
        start_index: int,
        cancel_event: Optional[Any],
    ) -> PageCollection:
        return self.paginator.collect(
            build_url,
            lambda html: extract_publications(html, source),
            num_results,
            start_index,
            cancel_event=cancel_event,
            read_total=True,
        )

    def _publication_result(self, query: str, filters: Dict[str, Any], collection: PageCollection) -> PublicationSearchResult:
        return PublicationSearchResult(
            query=query,
            publications=collection.records,
            filters=filters,
            total_results=collection.total_results,
            has_more=collection.has_more,
            next_start_index=collection.next_offset if collection.has_more else None,
            provider=PROVIDER_SCHOLAR,
        )

    # -- operations --------------------------------------------------------

    def search_publications(
        self,
        query: str,
        author: Optional[str] = None,
        year_start: Optional[int] = None,
        year_end: Optional[int] = None,
        num_results: int = 10,
        start_index: int = 0,
        sort_by: str = "relevance",
        include_patents: Optional[bool] = None,
        include_citations: Optional[bool] = None,
        cancel_event: Optional[Any] = None,
    ) -> PublicationSearchResult:
        query = _require_text(query, "Search query")
        author = _optional_text(author, "author")
        num = _num_results(num_results)
        start = _start_index(start_index)
        sort_by = _sort_by(sort_by)
        _year_range(year_start, year_end)

        filters = {
            "author": author,
            "year_start": year_start,
            "year_end": year_end,
            "sort_by": sort_by,
            "include_patents": include_patents,
            "include_citations": include_citations,
        }
        language = self.settings.language

        def primary() -> PublicationSearchResult:
            collection = self._collect(
                lambda offset: build_search_url(
                    query=query,
                    author=author,
                    year_start=year_start,
                    year_end=year_end,
                    start=offset,
                    sort_by=sort_by,
                    include_patents=include_patents,
                    include_citations=include_citations,
                    language=language,
                ),
                PublicationSource.PUBLICATION_SEARCH,
                num,
                start,
                cancel_event,
            )
            return self._publication_result(query, filters, collection)

        alternate = self._alternate(
            lambda serpapi: serpapi.search_publications(
                query,
                author=author,
                year_start=year_start,
                year_end=year_end,
                num_results=num,
                start_index=start,
                sort_by=sort_by,
                filters=filters,
            )
        )
        params = dict(filters, query=query, num_results=num, start_index=start)
        return self._run("search_publications", params, primary, alternate, cancel_event)

    def advanced_search(
        self,
        query: str,
        author: Optional[str] = None,
        source: Optional[str] = None,
        year_start: Optional[int] = None,
        year_end: Optional[int] = None,
        language: Optional[str] = None,
        include_patents: bool = False,
        review_articles_only: bool = False,
        num_results: int = 10,
        sort_by: str = "relevance",
        cancel_event: Optional[Any] = None,
    ) -> PublicationSearchResult:
        query = _require_text(query, "Search query")
        author = _optional_text(author, "author")
        source = _optional_text(source, "source")
        language = _optional_text(language, "language")
        num = _num_results(num_results)
        sort_by = _sort_by(sort_by)
        _year_range(year_start, year_end)

        filters = {
            "author": author,
            "source": source,
            "year_start": year_start,
            "year_end": year_end,
            "language": language,
            "include_patents": bool(include_patents),
            "review_articles_only": bool(review_articles_only),
            "sort_by": sort_by,
        }
        interface_language = self.settings.language

        def primary() -> PublicationSearchResult:
            collection = self._collect(
                lambda offset: build_advanced_search_url(
                    query=query,
                    author=author,
                    source=source,
                    year_start=year_start,
                    year_end=year_end,
                    language=language,
                    include_patents=bool(include_patents),
                    review_articles_only=bool(review_articles_only),
                    start=offset,
                    sort_by=sort_by,
                    interface_language=interface_language,
                ),
                PublicationSource.ADVANCED_SEARCH,
                num,
                0,
                cancel_event,
            )
            return self._publication_result(query, filters, collection)

        alternate = self._alternate(
            lambda serpapi: serpapi.advanced_search(
                query,
                author=author,
                source=source,
                year_start=year_start,
                year_end=year_end,
                language=language,
                include_patents=bool(include_patents),
                review_articles_only=bool(review_articles_only),
                num_results=num,
                sort_by=sort_by,
                filters=filters,
            )
        )
        params = dict(filters, query=query, num_results=num)
        return self._run("advanced_search", params, primary, alternate, cancel_event)

    def search_authors(
        self,
        query: str,
        organization: Optional[str] = None,
        num_results: int = 10,
        cancel_event: Optional[Any] = None,
    ) -> AuthorSearchResult:
        query = _require_text(query, "Author search query")
        organization = _optional_text(organization, "organization")
        num = _num_results(num_results)

        def primary() -> AuthorSearchResult:
            url: Optional[str] = build_author_search_url(
                query=query, organization=organization, language=self.settings.language
            )
            authors: List[AuthorSnippet] = []
            pages = 0
            while url and len(authors) < num:
                raise_if_cancelled(cancel_event)
                if pages > 0:
                    sleep_with_cancel(self.settings.page_delay_seconds, cancel_event)
                html = self.fetch_client.fetch(url, cancel_event=cancel_event)
                pages += 1
                page = parse_page(html)
                page_authors = extract_author_snippets(page)
                if not page_authors:
                    url = None
                    break
                authors.extend(page_authors)
                url = next_author_page_url(page)

            logger.info("Found %s authors for %r over %s pages", len(authors), query, pages)
            return AuthorSearchResult(
                query=query,
                authors=authors[:num],
                total_results=len(authors),
                has_more=bool(url) or len(authors) > num,
                provider=PROVIDER_SCHOLAR,
            )

        alternate = self._alternate(
            lambda serpapi: serpapi.search_authors(query, organization=organization, num_results=num)
        )
        params = {"query": query, "organization": organization, "num_results": num}
        return self._run("search_authors", params, primary, alternate, cancel_event)

    def get_author_profile(self, scholar_id: str, cancel_event: Optional[Any] = None) -> AuthorProfile:
        scholar_id = _require_id(scholar_id, "Scholar ID")

        def primary() -> AuthorProfile:
            url = build_author_profile_url(scholar_id, language=self.settings.language)
            html = self.fetch_client.fetch(url, cancel_event=cancel_event)
            profile = extract_author_profile(html, scholar_id)
            if profile is None:
                raise NotFound(f"Author profile not found: {scholar_id}", details={"scholar_id": scholar_id})
            logger.info(
                "Fetched profile %s (%s publications, %s coauthors)",
                scholar_id,
                len(profile.publications),
                len(profile.coauthors),
            )
            return profile

        return self._run("get_author_profile", {"scholar_id": scholar_id}, primary, None, cancel_event)

    def get_citations(
        self,
        cluster_id: str,
        num_results: int = 10,
        start_index: int = 0,
        sort_by: str = "relevance",
        cancel_event: Optional[Any] = None,
    ) -> CitationSearchResult:
        cluster_id = _require_id(cluster_id, "Cluster ID")
        num = _num_results(num_results)
        start = _start_index(start_index)
        sort_by = _sort_by(sort_by)
        language = self.settings.language

        def primary() -> CitationSearchResult:
            collection = self._collect(
                lambda offset: build_citation_url(cluster_id=cluster_id, start=offset, sort_by=sort_by, language=language),
                PublicationSource.CITATION,
                num,
                start,
                cancel_event,
            )
            total = collection.total_results
            if total is None:
                total = start + len(collection.records)
            return CitationSearchResult(
                cluster_id=cluster_id,
                citations=collection.records,
                total_citations=total,
                has_more=collection.has_more,
                next_start_index=collection.next_offset if collection.has_more else None,
                provider=PROVIDER_SCHOLAR,
            )

        alternate = self._alternate(
            lambda serpapi: serpapi.get_citations(cluster_id, num_results=num, start_index=start, sort_by=sort_by)
        )
        params = {"cluster_id": cluster_id, "num_results": num, "start_index": start, "sort_by": sort_by}
        return self._run("get_citations", params, primary, alternate, cancel_event)

    def get_related_articles(
        self,
        cluster_id: str,
        num_results: int = 10,
        cancel_event: Optional[Any] = None,
    ) -> PublicationSearchResult:
        cluster_id = _require_id(cluster_id, "Cluster ID")
        num = _num_results(num_results)
        language = self.settings.language

        def primary() -> PublicationSearchResult:
            collection = self._collect(
                lambda offset: build_related_url(cluster_id=cluster_id, start=offset, language=language),
                PublicationSource.RELATED,
                num,
                0,
                cancel_event,
            )
            query = f"related:{cluster_id}:scholar.google.com/"
            return self._publication_result(query, {"cluster_id": cluster_id}, collection)

        alternate = self._alternate(lambda serpapi: serpapi.get_related_articles(cluster_id, num_results=num))
        params = {"cluster_id": cluster_id, "num_results": num}
        return self._run("get_related_articles", params, primary, alternate, cancel_event)

    def get_all_versions(
        self,
        cluster_id: str,
        num_results: int = 10,
        cancel_event: Optional[Any] = None,
    ) -> PublicationSearchResult:
        cluster_id = _require_id(cluster_id, "Cluster ID")
        num = _num_results(num_results)
        language = self.settings.language

        def primary() -> PublicationSearchResult:
            collection = self._collect(
                lambda offset: build_versions_url(cluster_id=cluster_id, start=offset, language=language),
                PublicationSource.VERSION,
                num,
                0,
                cancel_event,
            )
            return self._publication_result(f"cluster:{cluster_id}", {"cluster_id": cluster_id}, collection)

        alternate = self._alternate(lambda serpapi: serpapi.get_all_versions(cluster_id, num_results=num))
        params = {"cluster_id": cluster_id, "num_results": num}
        return self._run("get_all_versions", params, primary, alternate, cancel_event)
