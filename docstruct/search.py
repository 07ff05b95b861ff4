"""
Case-insensitive full-text search over indexed pages.
"""

from __future__ import annotations

import logging
import threading

from docstruct.layout.indexer import TextLayoutIndexer
from docstruct.models import SearchMatch
from docstruct.text import PageText

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


def _fold(text: str) -> str:
    """Lower-case without changing the string length."""
    return "".join(c.lower() if len(c.lower()) == 1 else c for c in text)


class SearchIndex:
    """Searches page text in reading order, indexing pages on demand.

    Line-final hyphens followed by a lower-case word are joined, so
    ``exam-`` / ``ple`` matches "example" with one rectangle per line.
    """

    def __init__(self, indexer: TextLayoutIndexer):
        self.indexer = indexer
        self._texts: dict[int, tuple[PageText, str]] = {}
        self._lock = threading.Lock()

    def page_text(self, page_number: int) -> PageText | None:
        entry = self._entry(page_number)
        return entry[0] if entry else None

    def _entry(self, page_number: int) -> tuple[PageText, str] | None:
        cached = self._texts.get(page_number)
        if cached is not None:
            return cached
        layout = self.indexer.ensure_page_indexed(page_number)
        if layout is None:
            return None
        page_text = PageText.from_layout(layout, join_hyphenated=True)
        entry = (page_text, _fold(page_text.text))
        with self._lock:
            self._texts[page_number] = entry
        return entry

    def search(
        self, query: str, from_page: int = 1, to_page: int | None = None
    ) -> list[SearchMatch]:
        """Find every occurrence of ``query`` in pages ``from_page..to_page`` (inclusive)."""
        needle = _fold(" ".join(query.split()))
        if len(needle) < MIN_QUERY_LENGTH:
            return []

        page_count = self.indexer.context.page_count
        first = max(1, from_page)
        last = min(page_count, to_page if to_page is not None else page_count)
        if first > last:
            return []

        self.indexer.ensure_pages_indexed(range(first, last + 1))

        matches: list[SearchMatch] = []
        for page_number in range(first, last + 1):
            entry = self._entry(page_number)
            if entry is None:
                continue
            page_text, haystack = entry
            start = haystack.find(needle)
            while start != -1:
                end = start + len(needle)
                rects = page_text.rects_for_span(start, end)
                if rects:
                    matches.append(
                        SearchMatch(
                            page_number=page_number,
                            start=start,
                            end=end,
                            text=page_text.text[start:end],
                            rects=tuple(rects),
                        )
                    )
                start = haystack.find(needle, end)

        logger.debug("Search %r over pages %d-%d: %d matches", query, first, last, len(matches))
        return matches

    def invalidate(self, page_number: int | None = None) -> None:
        with self._lock:
            if page_number is None:
                self._texts.clear()
            else:
                self._texts.pop(page_number, None)
