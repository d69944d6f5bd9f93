"""
Offset-based pagination over Scholar result pages.

Scholar serves 10 results per page and advances with ``start=``. The
paginator keeps fetching until it holds enough records or the result set
is exhausted, sleeping a fixed delay between pages on top of the pacer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from scholar_harvester.config.settings import PAGE_SIZE
from scholar_harvester.services.scholar.cancel import raise_if_cancelled, sleep_with_cancel
from scholar_harvester.services.scholar.extractor import extract_total_results, has_next_page, parse_page

logger = logging.getLogger('scholar_harvester.services.scholar.paginator')


@dataclass
class PageCollection:
    records: List[Any] = field(default_factory=list)
    has_more: bool = False
    next_offset: int = 0
    total_results: Optional[int] = None
    pages_fetched: int = 0


class Paginator:
    def __init__(self, fetch_client: Any, *, page_size: int = PAGE_SIZE, page_delay_seconds: float = 1.0):
        self._fetch_client = fetch_client
        self._page_size = max(1, int(page_size))
        self._page_delay = max(0.0, float(page_delay_seconds))

    @property
    def page_size(self) -> int:
        return self._page_size

    def collect(
        self,
        build_url: Callable[[int], str],
        extract: Callable[[Any], List[Any]],
        target_count: int,
        start_index: int = 0,
        *,
        cancel_event: Optional[Any] = None,
        read_total: bool = False,
    ) -> PageCollection:
        """
        Fetch successive pages starting at ``start_index`` until ``target_count``
        records are held, a page yields nothing, or navigation shows no next page.

        Errors from the fetch client propagate unchanged; records gathered on
        earlier pages are discarded with them.
        """
        target = max(0, int(target_count))
        result = PageCollection(next_offset=max(0, int(start_index)))
        exhausted = False

        while len(result.records) < target:
            raise_if_cancelled(cancel_event)
            if result.pages_fetched > 0:
                sleep_with_cancel(self._page_delay, cancel_event)

            url = build_url(result.next_offset)
            html = self._fetch_client.fetch(url, cancel_event=cancel_event)
            result.pages_fetched += 1
            page = parse_page(html)
            if read_total and result.pages_fetched == 1:
                result.total_results = extract_total_results(page)

            page_records = extract(page)
            result.next_offset += self._page_size
            logger.debug(
                "Page %s (offset %s): %s records",
                result.pages_fetched,
                result.next_offset - self._page_size,
                len(page_records),
            )

            if not page_records:
                exhausted = True
                break
            result.records.extend(page_records)

            if has_next_page(page) is False:
                exhausted = True
                break

        result.records = result.records[:target]
        result.has_more = not exhausted
        logger.info(
            "Collected %s records over %s pages (has_more=%s)",
            len(result.records),
            result.pages_fetched,
            result.has_more,
        )
        return result
