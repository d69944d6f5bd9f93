"""
Error kinds raised by the Scholar harvesting core.

Every failure that crosses the service boundary is a ScholarError carrying a
ScholarErrorKind, so the dispatch layer can render a kind-specific message.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ScholarErrorKind(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    RATE_LIMITED = "RATE_LIMITED"
    BLOCKED = "BLOCKED"
    NOT_FOUND = "NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"


_HINTS = {
    ScholarErrorKind.RATE_LIMITED: "Google Scholar has rate-limited requests. Please wait a few minutes before trying again.",
    ScholarErrorKind.BLOCKED: "Access to Google Scholar has been blocked. Try again later or use a different network.",
    ScholarErrorKind.NOT_FOUND: "The requested resource was not found. Please check the ID and try again.",
    ScholarErrorKind.INVALID_INPUT: "Please check your input parameters and try again.",
}


class ScholarError(Exception):
    kind: ScholarErrorKind = ScholarErrorKind.NETWORK_ERROR

    def __init__(
        self,
        message: str,
        kind: Optional[ScholarErrorKind] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.details = details

    @property
    def user_hint(self) -> str:
        return _HINTS.get(self.kind, "")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r}, message={self.message!r})"


class InvalidInput(ScholarError):
    kind = ScholarErrorKind.INVALID_INPUT


class RateLimited(ScholarError):
    kind = ScholarErrorKind.RATE_LIMITED


class Blocked(ScholarError):
    kind = ScholarErrorKind.BLOCKED


class NotFound(ScholarError):
    kind = ScholarErrorKind.NOT_FOUND


class NetworkError(ScholarError):
    kind = ScholarErrorKind.NETWORK_ERROR


class ParseError(ScholarError):
    kind = ScholarErrorKind.PARSE_ERROR


# Signals the provider selector reacts to instead of retrying locally.
BLOCKING_ERRORS = (RateLimited, Blocked)
