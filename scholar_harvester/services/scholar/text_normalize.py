import datetime
import re
from typing import List, Optional
from urllib.parse import parse_qs, urlparse


_WS_RE = re.compile(r"\s+")
_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_YEAR_SUFFIX_RE = re.compile(r"[,\.]\s*(?P<year>(?:19|20)\d{2})(?:\s*,\s*(?P<num>\d+))?\s*$")
_CITED_BY_RE = re.compile(r"Cited by\s+([\d,]+)", re.IGNORECASE)
_TAG_PREFIX_RE = re.compile(r"^(?:\[[^\]]{1,20}\]\s*)+")
_EMAIL_DOMAIN_RE = re.compile(r"(?:verified email at|@)\s*([A-Za-z0-9.-]+\.[A-Za-z]{2,})", re.IGNORECASE)
_ELLIPSIS = {"…", "..."}

MIN_PLAUSIBLE_YEAR = 1900


def clean_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", str(text)).strip()


def plausible_year(year: Optional[int]) -> Optional[int]:
    if year is None:
        return None
    if MIN_PLAUSIBLE_YEAR <= year <= datetime.date.today().year:
        return year
    return None


def extract_year(text: Optional[str], *, last: bool = False) -> Optional[int]:
    """First (or last) 4-digit year token in 1900..2099, dropped if implausible."""
    matches = _YEAR_RE.findall(text or "")
    if not matches:
        return None
    return plausible_year(int(matches[-1] if last else matches[0]))


def strip_year(text: Optional[str]) -> str:
    """Remove the first year token and any dangling separators around it."""
    stripped = _YEAR_RE.sub("", text or "", count=1)
    return clean_text(stripped).strip(" ,")


def parse_int(text: Optional[str]) -> Optional[int]:
    digits = re.sub(r"\D", "", text or "")
    if not digits:
        return None
    return int(digits)


def extract_citation_count(text: Optional[str]) -> Optional[int]:
    m = _CITED_BY_RE.search(text or "")
    if not m:
        return None
    return parse_int(m.group(1))


def parse_authors(author_str: Optional[str]) -> List[str]:
    """Split "A Smith, B Jones, …" into display names."""
    names = []
    for raw in (author_str or "").split(","):
        name = clean_text(raw).strip("…").strip()
        if name and name not in _ELLIPSIS:
            names.append(name)
    return names


def query_param(url: Optional[str], name: str) -> Optional[str]:
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get(name)
    if not values:
        return None
    return values[0] or None


def extract_email_domain(text: Optional[str]) -> Optional[str]:
    """'Verified email at cs.stanford.edu - Homepage' -> 'cs.stanford.edu'."""
    m = _EMAIL_DOMAIN_RE.search(text or "")
    if not m:
        return None
    return m.group(1).lower()


def strip_tag_prefix(title: str) -> str:
    """Drop Scholar's '[PDF]' / '[CITATION][C]' markers from a title."""
    return _TAG_PREFIX_RE.sub("", title).strip()


def normalize_scholar_paper_title(raw: Optional[str]) -> str:
    """
    Normalize a paper title scraped from a Google Scholar profile row.

    Scholar sometimes returns citation-like strings as "titles", e.g.:
      "GE Hinton Imagenet classification with deep convolutional neural networks., 2012, 25"

    We want the real title part:
      "Imagenet classification with deep convolutional neural networks"
    """

    text = clean_text(raw)
    if not text:
        return ""

    m = _YEAR_SUFFIX_RE.search(text)
    if not m:
        return text

    before = text[: m.start()].strip()
    tokens = before.split()
    if len(tokens) < 3:
        return text

    def _is_initial(token: str) -> bool:
        return token.isalpha() and token.isupper() and len(token) == 1

    def _is_initials(token: str) -> bool:
        return token.isalpha() and token.isupper() and 1 <= len(token) <= 3

    def _is_capitalized(token: str) -> bool:
        return bool(token) and token[0].isupper()

    author_tokens = 0
    if _is_initial(tokens[0]) and _is_initial(tokens[1]) and _is_capitalized(tokens[2]):
        author_tokens = 3
    elif _is_initials(tokens[0]) and _is_capitalized(tokens[1]):
        author_tokens = 2

    if author_tokens <= 0 or len(tokens) <= author_tokens:
        return text

    candidate = " ".join(tokens[author_tokens:]).strip().strip(" .,:;")
    if len(candidate) < 8:
        return text
    return candidate
