"""
Citation resolution across the whole document.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Sequence

from docstruct.citations.detectors import (
    AuthorYearCitationDetector,
    ClaimedRanges,
    NumericCitationDetector,
    SuperscriptCitationDetector,
)
from docstruct.citations.fusion import CitationLinkFuser, IndexedLink
from docstruct.config import CitationConfig
from docstruct.lexicon import Lexicon
from docstruct.models import BodyFontStats, Citation, CitationType, CrossReference, PageLayout
from docstruct.references.anchors import AUTHOR_YEAR_FORMAT, ReferenceIndex
from docstruct.scoring import damp
from docstruct.text import PageText

logger = logging.getLogger(__name__)

SAME_ROW_TOLERANCE = 5.0


def compare_positions(a: Citation | CrossReference, b: Citation | CrossReference) -> int:
    """Top to bottom, then left to right; rows within a few points tie on y."""
    ra, rb = a.rects[0], b.rects[0]
    if abs(ra.y - rb.y) > SAME_ROW_TOLERANCE:
        return -1 if ra.y < rb.y else 1
    if ra.x != rb.x:
        return -1 if ra.x < rb.x else 1
    return 0


def body_page_text(layout: PageLayout, references: ReferenceIndex) -> PageText:
    """Page text without the bibliography's own lines or its heading."""
    section = references.section
    lines = layout.lines
    if section is not None and layout.page_number in section.page_numbers:
        lines = [
            line
            for line in lines
            if not section.contains_line(line)
            and not (line.page_number == section.start_page and line.text == section.heading)
        ]
    return PageText.from_lines(layout.page_number, lines)


class CitationResolver:
    """Detects inline citations and matches them to bibliography anchors.

    Pipeline: numeric and author-year detection per page, a document-wide
    superscript pass when the other detectors found little, damping of
    the non-dominant citation style, native link fusion, de-duplication
    and the final confidence filter.

    Usage:
        resolver = CitationResolver(lexicon)
        by_page = resolver.resolve(layouts, references, body, bibliography_links)
    """

    def __init__(self, lexicon: Lexicon, config: CitationConfig | None = None):
        self.lexicon = lexicon
        self.config = config or CitationConfig()
        self.numeric = NumericCitationDetector(lexicon, self.config)
        self.author_year = AuthorYearCitationDetector(lexicon, self.config)
        self.superscript = SuperscriptCitationDetector(lexicon, self.config)
        self.fuser = CitationLinkFuser(self.config)

    def resolve(
        self,
        layouts: Sequence[PageLayout],
        references: ReferenceIndex,
        body: BodyFontStats,
        links: dict[int, list[IndexedLink]] | None = None,
    ) -> dict[int, list[Citation]]:
        """Citations grouped by page number, each page in reading order."""
        if not references.anchors:
            logger.debug("No bibliography anchors; citation detection skipped")
            return {}

        citations: list[Citation] = []
        for layout in layouts:
            if layout.is_empty:
                continue
            page_text = body_page_text(layout, references)
            claimed = ClaimedRanges()
            citations.extend(self.numeric.detect(page_text, references, claimed))
            citations.extend(self.author_year.detect(page_text, references, claimed))

        if len(citations) < self.config.superscript_min_yield:
            lines = [
                line
                for layout in layouts
                for line in layout.lines
                if references.section is None or not references.section.contains_line(line)
            ]
            found = self.superscript.detect(lines, references, body)
            logger.debug("Superscript scan: %d candidates", len(found))
            citations.extend(found)

        self._damp(citations, references)
        if links:
            self.fuser.fuse(citations, links, references)

        threshold = self.config.min_confidence
        kept = [c for c in self._deduplicate(citations) if c.confidence >= threshold]
        by_page: dict[int, list[Citation]] = {}
        for citation in kept:
            by_page.setdefault(citation.page_number, []).append(citation)
        for page_citations in by_page.values():
            page_citations.sort(key=functools.cmp_to_key(compare_positions))

        logger.info("Resolved %d citations on %d pages", len(kept), len(by_page))
        return by_page

    def _damp(self, citations: list[Citation], references: ReferenceIndex) -> None:
        dominant = references.dominant_format(self.config.format_sample_size)
        for citation in citations:
            is_author_year = citation.type == CitationType.AUTHOR_YEAR
            if is_author_year != (dominant == AUTHOR_YEAR_FORMAT):
                citation.confidence = damp(citation.confidence, self.config.format_damping)

    @staticmethod
    def _deduplicate(citations: list[Citation]) -> list[Citation]:
        best: dict[str, Citation] = {}
        for citation in citations:
            rect = citation.rects[0]
            key = f"{citation.page_number}:{round(rect.x)}:{round(rect.y)}"
            current = best.get(key)
            if current is None or citation.confidence > current.confidence:
                best[key] = citation
        return list(best.values())
