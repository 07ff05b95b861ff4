"""
Bibliography section location.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from docstruct.config import ReferenceConfig
from docstruct.lexicon import Lexicon
from docstruct.models import BodyFontStats, Line, PageLayout, ReferenceSection
from docstruct.scoring import section_confidence

logger = logging.getLogger(__name__)

MAX_HEADING_LENGTH = 100


class ReferenceSectionLocator:
    """Finds where the bibliography starts and ends.

    The start is the *last* visually distinguished line whose text
    (section number stripped) is a bibliography heading, so a table of
    contents entry early in the document never wins. The end is the
    next heading-like line, or the end of the document.
    """

    def __init__(self, lexicon: Lexicon, config: ReferenceConfig | None = None):
        self.lexicon = lexicon
        self.config = config or ReferenceConfig()

    def locate(
        self, layouts: Sequence[PageLayout], body: BodyFontStats
    ) -> ReferenceSection | None:
        start = self._find_start(layouts, body)
        if start is None:
            logger.debug("No bibliography heading found")
            return None

        start_page, start_index = start
        heading = layouts[start_page].lines[start_index]

        lines: list[Line] = []
        end_page, end_index = start_page, start_index
        for page_pos in range(start_page, len(layouts)):
            page_lines = layouts[page_pos].lines
            first = start_index + 1 if page_pos == start_page else 0
            stop = False
            for index in range(first, len(page_lines)):
                line = page_lines[index]
                if lines and self._is_section_end(line, body):
                    stop = True
                    break
                lines.append(line)
                end_page, end_index = page_pos, index
            if stop:
                break

        last = lines[-1] if lines else heading
        section = ReferenceSection(
            heading=heading.text,
            start_page=layouts[start_page].page_number,
            start_line_index=start_index + 1,
            start_y=heading.bottom,
            end_page=layouts[end_page].page_number,
            end_line_index=end_index,
            end_y=last.bottom,
            lines=lines,
        )
        section.confidence = self._confidence(section)
        logger.debug(
            "Bibliography %r on pages %d-%d: %d lines (confidence %.2f)",
            section.heading,
            section.start_page,
            section.end_page,
            len(lines),
            section.confidence,
        )
        return section

    def _find_start(
        self, layouts: Sequence[PageLayout], body: BodyFontStats
    ) -> tuple[int, int] | None:
        # Documents no longer than the skipped prefix are scanned in full
        skip = self.config.skip_leading_pages
        if len(layouts) <= skip:
            skip = 0

        found = None
        for page_pos, layout in enumerate(layouts):
            if layout.page_number <= skip:
                continue
            for index, line in enumerate(layout.lines):
                if len(line.text) > MAX_HEADING_LENGTH:
                    continue
                if not self.lexicon.is_reference_heading(line.text):
                    continue
                if self._is_distinguished(line, body, self.config.heading_size_ratio):
                    found = (page_pos, index)
        return found

    @staticmethod
    def _is_distinguished(line: Line, body: BodyFontStats, ratio: float) -> bool:
        return line.font_size > body.font_size * ratio or line.is_bold or line.is_all_caps

    def _is_section_end(self, line: Line, body: BodyFontStats) -> bool:
        text = line.text
        if not text or len(text) > MAX_HEADING_LENGTH:
            return False
        if self.lexicon.is_post_reference_heading(text) and len(text) < 60:
            return True
        if any(fmt.pattern.match(text) for fmt in self.lexicon.reference_formats[:2]):
            return False
        if not self._is_distinguished(line, body, self.config.end_heading_size_ratio):
            return False
        # A bold or capitalised run at the start of an entry is not a heading
        if self.lexicon.year.search(text) or text.rstrip().endswith((",", ";")):
            return False
        return sum(c.isalpha() for c in text) >= 3

    def _confidence(self, section: ReferenceSection) -> float:
        lines = section.lines
        numbered = any(
            fmt.pattern.match(line.text)
            for line in lines
            for fmt in self.lexicon.reference_formats[:3]
        )
        with_year = sum(1 for line in lines if self.lexicon.year.search(line.text))
        share = with_year / len(lines) if lines else 0.0
        span = section.end_page - section.start_page + 1
        return section_confidence(len(lines), span, numbered, share)
