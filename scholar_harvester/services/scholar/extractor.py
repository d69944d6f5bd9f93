"""
Google Scholar HTML extraction rules.

All selectors live here as module constants so a markup change on Scholar's
side is a one-file fix; bump EXTRACTION_RULES_VERSION when they change.

Every extractor is a pure function of the HTML it is given. A card that
cannot be parsed is logged and skipped, never returned half-filled.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

from scholar_harvester.services.scholar.models import (
    AuthorProfile,
    AuthorSnippet,
    CitationsByYear,
    CoAuthor,
    Publication,
    PublicationSource,
)
from scholar_harvester.services.scholar.text_normalize import (
    clean_text,
    extract_citation_count,
    extract_email_domain,
    extract_year,
    normalize_scholar_paper_title,
    parse_authors,
    parse_int,
    plausible_year,
    query_param,
    strip_tag_prefix,
    strip_year,
)
from scholar_harvester.services.scholar.urls import absolute_url, build_author_profile_url

logger = logging.getLogger('scholar_harvester.services.scholar.extractor')

EXTRACTION_RULES_VERSION = "2024.06"

# Raw HTML or a page already run through parse_page()
Page = Union[str, Tag, None]

PARSER = "html.parser"

# Result cards (search, citations, related, versions)
RESULT_CARD = "div.gs_r.gs_or.gs_scl"
CARD_TITLE = "h3.gs_rt"
CARD_BYLINE = "div.gs_a"
CARD_SNIPPET = "div.gs_rs"
CARD_FOOTER_LINKS = "div.gs_fl a"
CARD_PDF_LINK = "div.gs_or_ggsm a, div.gs_ggs a"
BYLINE_SEPARATOR = " - "

# Result page header / navigation
RESULT_STATS = "#gs_ab_md"
NAV_BLOCK = "#gs_n, #gs_nm"
NAV_NEXT_ICON = ".gs_ico_nav_next"
NAV_NEXT_BUTTON = "button.gs_btnPR"

# Author search cards
AUTHOR_CARD = "div.gsc_1usr"
AUTHOR_NAME_LINK = "h3.gs_ai_name a"
AUTHOR_AFFILIATION = "div.gs_ai_aff"
AUTHOR_EMAIL = "div.gs_ai_eml"
AUTHOR_INTERESTS = "div.gs_ai_int a"
AUTHOR_CITED_BY = "div.gs_ai_cby"
AUTHOR_PHOTO = "span.gs_ai_pho img"

# Author profile page
PROFILE_NAME = "#gsc_prf_in"
PROFILE_AFFILIATION = "div.gsc_prf_il"
PROFILE_EMAIL = "#gsc_prf_ivh"
PROFILE_HOMEPAGE = "#gsc_prf_ivh a"
PROFILE_INTERESTS = "#gsc_prf_int a"
PROFILE_IMAGE = "#gsc_prf_pup-img"
PROFILE_METRIC_CELLS = "#gsc_rsb_st td.gsc_rsb_std"
PROFILE_PUBLICATION_ROW = "#gsc_a_b tr.gsc_a_tr"
PROFILE_PUBLICATION_TITLE = "a.gsc_a_at"
PROFILE_PUBLICATION_GRAY = "div.gs_gray"
PROFILE_PUBLICATION_CITES = "a.gsc_a_ac"
PROFILE_PUBLICATION_YEAR = "td.gsc_a_y span"
PROFILE_COAUTHOR = "#gsc_rsb_co li"
PROFILE_COAUTHOR_LINK = "span.gsc_rsb_a_desc a"
PROFILE_COAUTHOR_AFFILIATION = "span.gsc_rsb_a_ext"
PROFILE_HIST_YEARS = ".gsc_md_hist_b .gsc_g_t"
PROFILE_HIST_VALUES = ".gsc_md_hist_b .gsc_g_al"

# Metrics table, by column position
METRIC_FIELDS = ("citation_count", "citations_5y", "h_index", "h_index_5y", "i10_index", "i10_index_5y")

_TOTAL_RESULTS_RE = re.compile(r"(?:About\s+)?([\d][\d,.\s]*)\s+results?", re.IGNORECASE)
_VERSIONS_RE = re.compile(r"All\s+([\d,]+)\s+versions?", re.IGNORECASE)
_ONCLICK_URL_RE = re.compile(r"window\.location\s*=\s*'([^']+)'")


def parse_page(html: Optional[str]) -> BeautifulSoup:
    """Parse once; every extractor below also accepts the parsed page."""
    return BeautifulSoup(html or "", PARSER)


def _soup(page) -> Tag:
    if isinstance(page, Tag):
        return page
    return parse_page(page)


def _text(node) -> str:
    if node is None:
        return ""
    return clean_text(node.get_text(" "))


def _href(node) -> Optional[str]:
    if node is None:
        return None
    href = node.get("href")
    return href or None


# ---------------------------------------------------------------------------
# Result cards
# ---------------------------------------------------------------------------


def _parse_byline(byline: str):
    """'A Smith, B Jones - Nature, 2019 - nature.com' -> (authors, venue, year)."""
    parts = [p.strip() for p in byline.split(BYLINE_SEPARATOR)]
    authors = parse_authors(parts[0]) if parts else []
    if len(parts) < 2:
        return authors, None, None

    segment = parts[1]
    year = extract_year(segment)
    venue = strip_year(segment) or None
    # "A Smith - arxiv.org": the second segment is the host, not a venue
    if venue and len(parts) == 2 and " " not in venue and "." in venue:
        venue = None
    return authors, venue, year


def _parse_card(card, source: PublicationSource) -> Optional[Publication]:
    title_node = card.select_one(CARD_TITLE)
    if title_node is None:
        return None
    title_link = title_node.find("a")
    title = strip_tag_prefix(_text(title_link) or _text(title_node))
    if not title:
        return None

    authors, venue, year = _parse_byline(_text(card.select_one(CARD_BYLINE)))
    pub = Publication(
        title=title,
        authors=authors,
        year=year,
        venue=venue,
        abstract=_text(card.select_one(CARD_SNIPPET)) or None,
        url=_href(title_link),
        pdf_url=_href(card.select_one(CARD_PDF_LINK)),
        source=source,
    )

    for link in card.select(CARD_FOOTER_LINKS):
        label = _text(link)
        href = _href(link)
        if not href:
            continue
        if label.lower().startswith("cited by"):
            pub.citation_count = extract_citation_count(label)
            pub.cites_id = query_param(href, "cites")
            pub.cited_by_url = absolute_url(href)
        elif label.lower().startswith("related"):
            pub.related_url = absolute_url(href)
        else:
            m = _VERSIONS_RE.search(label)
            if m:
                pub.versions_count = parse_int(m.group(1))
                pub.cluster_id = query_param(href, "cluster")
                pub.versions_url = absolute_url(href)

    if not pub.cluster_id:
        pub.cluster_id = pub.cites_id
    return pub


def has_scholar_content(html: Page) -> bool:
    """Whether the page carries result cards, author cards or a profile header."""
    soup = _soup(html)
    return any(soup.select_one(selector) is not None for selector in (RESULT_CARD, AUTHOR_CARD, PROFILE_NAME))


def extract_publications(html: Page, source: PublicationSource = PublicationSource.PUBLICATION_SEARCH) -> List[Publication]:
    """One Publication per result card; malformed cards are skipped."""
    soup = _soup(html)
    publications: List[Publication] = []
    for index, card in enumerate(soup.select(RESULT_CARD)):
        try:
            pub = _parse_card(card, source)
        except Exception as e:  # noqa: BLE001
            logger.warning("Skipping result card %s: %s", index, e)
            continue
        if pub is None:
            logger.debug("Skipping result card %s without a title", index)
            continue
        publications.append(pub)
    return publications


def extract_total_results(html: Page) -> Optional[int]:
    """'About 1,230 results (0.04 sec)' -> 1230."""
    stats = _soup(html).select_one(RESULT_STATS)
    m = _TOTAL_RESULTS_RE.search(_text(stats))
    if not m:
        return None
    return parse_int(m.group(1))


def has_next_page(html: Page) -> Optional[bool]:
    """
    Whether the result page links to a following page.

    Returns None when the page has no navigation block at all (a single page
    of results renders none), so callers can fall back to other signals.
    """
    nav = _soup(html).select_one(NAV_BLOCK)
    if nav is None:
        return None
    icon = nav.select_one(NAV_NEXT_ICON)
    if icon is not None:
        return icon.find_parent("a") is not None
    button = nav.select_one(NAV_NEXT_BUTTON)
    if button is not None:
        return not button.has_attr("disabled")
    return False


# ---------------------------------------------------------------------------
# Author search
# ---------------------------------------------------------------------------


def _parse_author_card(card) -> Optional[AuthorSnippet]:
    link = card.select_one(AUTHOR_NAME_LINK)
    scholar_id = query_param(absolute_url(_href(link)), "user")
    name = _text(link)
    if not scholar_id or not name:
        return None

    photo = card.select_one(AUTHOR_PHOTO)
    return AuthorSnippet(
        scholar_id=scholar_id,
        name=name,
        affiliation=_text(card.select_one(AUTHOR_AFFILIATION)) or None,
        email_domain=extract_email_domain(_text(card.select_one(AUTHOR_EMAIL))),
        interests=[t for t in (_text(a) for a in card.select(AUTHOR_INTERESTS)) if t],
        citation_count=extract_citation_count(_text(card.select_one(AUTHOR_CITED_BY))),
        url=build_author_profile_url(scholar_id, pagesize=None),
        image_url=absolute_url(photo.get("src")) if photo is not None else None,
    )


def extract_author_snippets(html: Page) -> List[AuthorSnippet]:
    soup = _soup(html)
    authors: List[AuthorSnippet] = []
    for index, card in enumerate(soup.select(AUTHOR_CARD)):
        try:
            author = _parse_author_card(card)
        except Exception as e:  # noqa: BLE001
            logger.warning("Skipping author card %s: %s", index, e)
            continue
        if author is not None:
            authors.append(author)
    return authors


def next_author_page_url(html: Page) -> Optional[str]:
    """
    Author search pages paginate with an opaque token carried in the Next
    button's onclick handler rather than a start offset.
    """
    button = _soup(html).select_one(NAV_NEXT_BUTTON)
    if button is None or button.has_attr("disabled"):
        return None
    m = _ONCLICK_URL_RE.search(button.get("onclick") or "")
    if not m:
        return None
    path = m.group(1).replace("\\x3d", "=").replace("\\x26", "&")
    return absolute_url(path)


# ---------------------------------------------------------------------------
# Author profile
# ---------------------------------------------------------------------------


def _parse_profile_row(row) -> Optional[Publication]:
    title_link = row.select_one(PROFILE_PUBLICATION_TITLE)
    title = normalize_scholar_paper_title(_text(title_link))
    if not title:
        return None

    gray = row.select(PROFILE_PUBLICATION_GRAY)
    authors = parse_authors(_text(gray[0])) if gray else []
    venue_text = _text(gray[1]) if len(gray) > 1 else ""

    year = plausible_year(parse_int(_text(row.select_one(PROFILE_PUBLICATION_YEAR))))
    if year is None:
        year = extract_year(venue_text, last=True)

    cites_link = row.select_one(PROFILE_PUBLICATION_CITES)
    return Publication(
        title=title,
        authors=authors,
        year=year,
        venue=strip_year(venue_text) if venue_text else None,
        citation_count=parse_int(_text(cites_link)),
        cites_id=query_param(_href(cites_link), "cites"),
        cluster_id=query_param(_href(cites_link), "cites"),
        cited_by_url=absolute_url(_href(cites_link)),
        url=absolute_url(_href(title_link)),
        source=PublicationSource.AUTHOR_PROFILE,
    )


def _parse_coauthors(soup) -> List[CoAuthor]:
    coauthors: List[CoAuthor] = []
    for item in soup.select(PROFILE_COAUTHOR):
        link = item.select_one(PROFILE_COAUTHOR_LINK)
        scholar_id = query_param(absolute_url(_href(link)), "user")
        name = _text(link)
        if not scholar_id or not name:
            continue
        coauthors.append(
            CoAuthor(
                scholar_id=scholar_id,
                name=name,
                affiliation=_text(item.select_one(PROFILE_COAUTHOR_AFFILIATION)) or None,
            )
        )
    return coauthors


def _parse_citations_by_year(soup) -> List[CitationsByYear]:
    years = soup.select(PROFILE_HIST_YEARS)
    values = soup.select(PROFILE_HIST_VALUES)
    points: List[CitationsByYear] = []
    for i, year_node in enumerate(years):
        year = parse_int(_text(year_node))
        if year is None:
            continue
        citations = parse_int(_text(values[i])) if i < len(values) else None
        points.append(CitationsByYear(year=year, citations=citations or 0))
    return points


def extract_author_profile(html: Page, scholar_id: str) -> Optional[AuthorProfile]:
    """Full profile, or None when the page carries no profile header."""
    soup = _soup(html)
    name_node = soup.select_one(PROFILE_NAME)
    if name_node is None:
        return None

    affiliation_node = soup.select_one(PROFILE_AFFILIATION)
    image = soup.select_one(PROFILE_IMAGE)
    profile = AuthorProfile(
        scholar_id=scholar_id,
        name=_text(name_node),
        affiliation=_text(affiliation_node) or None,
        email_domain=extract_email_domain(_text(soup.select_one(PROFILE_EMAIL))),
        homepage=_href(soup.select_one(PROFILE_HOMEPAGE)),
        interests=[t for t in (_text(a) for a in soup.select(PROFILE_INTERESTS)) if t],
        url=build_author_profile_url(scholar_id, pagesize=None),
        image_url=absolute_url(image.get("src")) if image is not None else None,
    )

    cells = soup.select(PROFILE_METRIC_CELLS)
    for field_name, cell in zip(METRIC_FIELDS, cells):
        setattr(profile, field_name, parse_int(_text(cell)))

    for index, row in enumerate(soup.select(PROFILE_PUBLICATION_ROW)):
        try:
            pub = _parse_profile_row(row)
        except Exception as e:  # noqa: BLE001
            logger.warning("Skipping profile publication row %s for %s: %s", index, scholar_id, e)
            continue
        if pub is not None:
            profile.publications.append(pub)

    profile.coauthors = _parse_coauthors(soup)
    profile.citations_by_year = _parse_citations_by_year(soup)
    return profile
