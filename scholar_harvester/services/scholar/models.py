"""
Canonical record model.

Every extraction path (primary HTML, SerpAPI JSON) must produce these shapes.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class PublicationSource(str, Enum):
    PUBLICATION_SEARCH = "PUBLICATION_SEARCH"
    ADVANCED_SEARCH = "ADVANCED_SEARCH"
    AUTHOR_PROFILE = "AUTHOR_PROFILE"
    CITATION = "CITATION"
    RELATED = "RELATED"
    VERSION = "VERSION"


PROVIDER_SCHOLAR = "scholar"
PROVIDER_SERPAPI = "serpapi"


def _drop_empty(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Publication:
    title: str
    authors: List[str] = field(default_factory=list)
    year: Optional[int] = None
    venue: Optional[str] = None
    abstract: Optional[str] = None
    citation_count: Optional[int] = None
    url: Optional[str] = None
    pdf_url: Optional[str] = None
    cluster_id: Optional[str] = None
    cites_id: Optional[str] = None
    versions_count: Optional[int] = None
    cited_by_url: Optional[str] = None
    related_url: Optional[str] = None
    versions_url: Optional[str] = None
    source: PublicationSource = PublicationSource.PUBLICATION_SEARCH
    provider: str = PROVIDER_SCHOLAR

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        return _drop_empty(data)


@dataclass
class CoAuthor:
    """Back-reference to another profile; never embeds the full profile."""

    scholar_id: str
    name: str
    affiliation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty(asdict(self))


@dataclass
class CitationsByYear:
    year: int
    citations: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AuthorSnippet:
    scholar_id: str
    name: str
    affiliation: Optional[str] = None
    email_domain: Optional[str] = None
    interests: List[str] = field(default_factory=list)
    citation_count: Optional[int] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    provider: str = PROVIDER_SCHOLAR

    def to_dict(self) -> Dict[str, Any]:
        return _drop_empty(asdict(self))


@dataclass
class AuthorProfile:
    scholar_id: str
    name: str
    affiliation: Optional[str] = None
    email_domain: Optional[str] = None
    homepage: Optional[str] = None
    interests: List[str] = field(default_factory=list)
    citation_count: Optional[int] = None
    citations_5y: Optional[int] = None
    h_index: Optional[int] = None
    h_index_5y: Optional[int] = None
    i10_index: Optional[int] = None
    i10_index_5y: Optional[int] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    publications: List[Publication] = field(default_factory=list)
    coauthors: List[CoAuthor] = field(default_factory=list)
    citations_by_year: List[CitationsByYear] = field(default_factory=list)
    provider: str = PROVIDER_SCHOLAR

    def to_snippet(self) -> AuthorSnippet:
        return AuthorSnippet(
            scholar_id=self.scholar_id,
            name=self.name,
            affiliation=self.affiliation,
            email_domain=self.email_domain,
            interests=list(self.interests),
            citation_count=self.citation_count,
            url=self.url,
            image_url=self.image_url,
            provider=self.provider,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = _drop_empty(asdict(self))
        data["publications"] = [p.to_dict() for p in self.publications]
        data["coauthors"] = [c.to_dict() for c in self.coauthors]
        data["citations_by_year"] = [c.to_dict() for c in self.citations_by_year]
        return data


@dataclass
class PublicationSearchResult:
    query: str
    publications: List[Publication] = field(default_factory=list)
    filters: Dict[str, Any] = field(default_factory=dict)
    total_results: Optional[int] = None
    has_more: bool = False
    next_start_index: Optional[int] = None
    provider: str = PROVIDER_SCHOLAR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "filters": _drop_empty(dict(self.filters)),
            "publications": [p.to_dict() for p in self.publications],
            "total_results": self.total_results,
            "has_more": self.has_more,
            "next_start_index": self.next_start_index,
            "provider": self.provider,
        }


@dataclass
class AuthorSearchResult:
    query: str
    authors: List[AuthorSnippet] = field(default_factory=list)
    total_results: Optional[int] = None
    has_more: bool = False
    provider: str = PROVIDER_SCHOLAR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "authors": [a.to_dict() for a in self.authors],
            "total_results": self.total_results,
            "has_more": self.has_more,
            "provider": self.provider,
        }


@dataclass
class CitationSearchResult:
    cluster_id: str
    citations: List[Publication] = field(default_factory=list)
    total_citations: Optional[int] = None
    has_more: bool = False
    next_start_index: Optional[int] = None
    provider: str = PROVIDER_SCHOLAR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "citations": [c.to_dict() for c in self.citations],
            "total_citations": self.total_citations,
            "has_more": self.has_more,
            "next_start_index": self.next_start_index,
            "provider": self.provider,
        }
