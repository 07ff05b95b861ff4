"""
Bibliography segmentation into reference anchors.

Numbered lists are split at each numbering marker; every other format
goes through the structural boundary detector. Each entry becomes an
immutable ReferenceAnchor with a confidence score and, when confident
enough, parsed author and year fields.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from docstruct.config import ReferenceConfig
from docstruct.lexicon import Lexicon, ReferenceFormat
from docstruct.models import (
    AnchorPageRange,
    BodyFontStats,
    Line,
    PageLayout,
    ReferenceAnchor,
    ReferenceSection,
)
from docstruct.references.boundaries import BoundaryReason, EntryDraft, StructuralBoundaryDetector
from docstruct.references.locator import ReferenceSectionLocator
from docstruct.references.parsing import (
    clean_cited_author,
    parse_reference,
    surname_key,
)
from docstruct.scoring import (
    ANCHOR_BASE_AUTHOR_YEAR,
    ANCHOR_BASE_GAP_ONLY,
    ANCHOR_BASE_NUMBERED,
    ANCHOR_BASE_STRUCTURAL,
    ANCHOR_BASE_UNMARKED,
    anchor_confidence,
    years_match,
)

logger = logging.getLogger(__name__)

AUTHOR_YEAR_FORMAT = "author-year"
HANGING_FORMAT = "hanging-indent"
UNKNOWN_FORMAT = "unknown"

MAX_NUMBER_JUMP = 10  # a larger jump in printed numbers is treated as text, not a marker
HANGING_PITCH_RATIO = 2.2
MIN_HANGING_PATTERNS = 3


def join_line_texts(lines: Sequence[Line]) -> str:
    """Entry text with line-end hyphenation undone."""
    parts: list[str] = []
    for line in lines:
        text = line.text
        if not text:
            continue
        if parts and parts[-1].endswith("-") and text[:1].islower():
            parts[-1] = parts[-1][:-1] + text
        else:
            parts.append(text)
    return " ".join(parts)


class ReferenceAnchorExtractor:
    """Turns a located bibliography into ordered ReferenceAnchors.

    Usage:
        extractor = ReferenceAnchorExtractor(lexicon)
        anchors, fmt = extractor.extract(section, baseline_pitch=12.0)
    """

    def __init__(self, lexicon: Lexicon, config: ReferenceConfig | None = None):
        self.lexicon = lexicon
        self.config = config or ReferenceConfig()
        self.detector = StructuralBoundaryDetector(lexicon, self.config)

    # --------------------------------------------------------
    # Format detection
    # --------------------------------------------------------

    def detect_format(self, lines: Sequence[Line]) -> str:
        """Name of a numbering format, ``author-year``, ``hanging-indent`` or ``unknown``."""
        sample = [line for line in lines if len(line.text) > 10][: self.config.format_sample_size]
        if not sample:
            return UNKNOWN_FORMAT

        needed = len(sample) * self.config.format_min_share
        for fmt in self.lexicon.reference_formats:
            hits = sum(1 for line in sample if fmt.pattern.match(line.text))
            if hits and hits >= needed:
                return fmt.name

        hits = sum(1 for line in sample if self.lexicon.author_year_start.match(line.text))
        if hits and hits >= needed:
            return AUTHOR_YEAR_FORMAT

        if self._count_hanging_patterns(lines) >= MIN_HANGING_PATTERNS:
            return HANGING_FORMAT
        return UNKNOWN_FORMAT

    @staticmethod
    def _count_hanging_patterns(lines: Sequence[Line]) -> int:
        count = 0
        for line, following in zip(lines, lines[1:]):
            if not line.is_at_line_start or following.page_number != line.page_number:
                continue
            step = following.y - line.y
            if 0 < step <= line.font_size * HANGING_PITCH_RATIO and following.x > (
                line.x + line.font_size
            ):
                count += 1
        return count

    # --------------------------------------------------------
    # Extraction
    # --------------------------------------------------------

    def extract(
        self, section: ReferenceSection, baseline_pitch: float = 0.0
    ) -> tuple[list[ReferenceAnchor], str]:
        lines = [line for line in section.lines if line.text]
        if not lines:
            return [], UNKNOWN_FORMAT

        fmt_name = self.detect_format(lines)
        numbered = self._format(fmt_name)
        if numbered is not None:
            drafts = self._segment_numbered(lines, numbered)
        else:
            drafts = self.detector.segment(lines, baseline_pitch)

        anchors = []
        for draft in drafts:
            anchor = self._build_anchor(draft, len(anchors) + 1, fmt_name, numbered is not None)
            if anchor is not None:
                anchors.append(anchor)

        logger.debug("Extracted %d anchors (format %s)", len(anchors), fmt_name)
        return anchors, fmt_name

    def _format(self, name: str) -> ReferenceFormat | None:
        for fmt in self.lexicon.reference_formats:
            if fmt.name == name:
                return fmt
        return None

    def _segment_numbered(self, lines: Sequence[Line], fmt: ReferenceFormat) -> list[EntryDraft]:
        """A new entry starts exactly at each numbering marker."""
        drafts: list[EntryDraft] = []
        for line in lines:
            index = fmt.extract_index(line.text)
            if index is not None and (
                not drafts
                or drafts[-1].index is None
                or 0 < index - drafts[-1].index <= MAX_NUMBER_JUMP
            ):
                drafts.append(EntryDraft([line], BoundaryReason.FIRST, index=index))
            elif drafts:
                drafts[-1].lines.append(line)
            # lines before the first marker are not part of any entry
        return drafts

    def _base_confidence(self, draft: EntryDraft, fmt_name: str, numbered: bool) -> float:
        if numbered:
            return ANCHOR_BASE_NUMBERED
        if fmt_name == AUTHOR_YEAR_FORMAT:
            if self.lexicon.author_year_start.match(draft.lines[0].text):
                return ANCHOR_BASE_AUTHOR_YEAR
            return ANCHOR_BASE_UNMARKED
        if draft.reason == BoundaryReason.GAP:
            return ANCHOR_BASE_GAP_ONLY
        return ANCHOR_BASE_STRUCTURAL

    def _build_anchor(
        self, draft: EntryDraft, ordinal: int, fmt_name: str, numbered: bool
    ) -> ReferenceAnchor | None:
        text = join_line_texts(draft.lines)
        if not text.strip():
            return None

        year = self.lexicon.find_year(text)
        confidence = anchor_confidence(
            self._base_confidence(draft, fmt_name, numbered),
            len(text),
            has_year=year is not None,
            has_ending=self.lexicon.has_reference_ending(text),
            min_length=self.lexicon.min_reference_length,
            max_length=self.lexicon.max_reference_length,
        )

        first_author = None
        authors: tuple[str, ...] = ()
        if numbered or confidence >= self.config.parse_confidence_threshold:
            parsed = parse_reference(text, self.lexicon)
            first_author, authors, year = parsed.first_author, parsed.authors, parsed.year

        first, last = draft.lines[0], draft.lines[-1]
        return ReferenceAnchor(
            id=f"ref-{ordinal}",
            index=draft.index,
            ordinal=ordinal,
            page_number=first.page_number,
            start_x=first.x,
            start_y=first.y,
            end_page=last.page_number,
            end_x=last.right,
            end_y=last.bottom,
            text=text,
            confidence=confidence,
            format_hint=fmt_name,
            first_author=first_author,
            authors=authors,
            year=year,
            page_ranges=_page_ranges(draft.lines),
        )


def _page_ranges(lines: Sequence[Line]) -> tuple[AnchorPageRange, ...]:
    by_page: dict[int, list] = {}
    for line in lines:
        by_page.setdefault(line.page_number, []).append(line.rect)
    return tuple(AnchorPageRange(page, tuple(rects)) for page, rects in by_page.items())


def _axis_distance(value: float, low: float, high: float) -> float:
    if low <= value <= high:
        return 0.0
    return min(abs(value - low), abs(value - high))


# ============================================================
# Index & lookups
# ============================================================


@dataclass
class ReferenceIndex:
    """The bibliography of one document: section, anchors and lookups."""

    section: ReferenceSection | None = None
    anchors: list[ReferenceAnchor] = field(default_factory=list)
    format: str = UNKNOWN_FORMAT
    processing_log: list[str] = field(default_factory=list)

    def __post_init__(self):
        self._by_index: dict[int, ReferenceAnchor] = {}
        self._by_id: dict[str, ReferenceAnchor] = {}
        self._by_page: dict[int, list[ReferenceAnchor]] = {}
        for anchor in self.anchors:
            if anchor.index is not None:
                self._by_index.setdefault(anchor.index, anchor)
            self._by_id[anchor.id] = anchor
            for page_range in anchor.page_ranges:
                self._by_page.setdefault(page_range.page_number, []).append(anchor)

    @classmethod
    def empty(cls, note: str | None = None) -> ReferenceIndex:
        return cls(processing_log=[note] if note else [])

    @property
    def is_numbered(self) -> bool:
        return self.format.startswith("numbered")

    def __len__(self) -> int:
        return len(self.anchors)

    def anchors_on_page(self, page_number: int) -> list[ReferenceAnchor]:
        """Anchors with at least one line on the page, in reading order."""
        return list(self._by_page.get(page_number, []))

    def find_reference_by_index(self, index: int) -> ReferenceAnchor | None:
        return self._by_index.get(index)

    def find_by_id(self, anchor_id: str) -> ReferenceAnchor | None:
        return self._by_id.get(anchor_id)

    def next_anchor(self, anchor: ReferenceAnchor) -> ReferenceAnchor | None:
        if anchor.ordinal < len(self.anchors):
            return self.anchors[anchor.ordinal]
        return None

    def find_bounding_anchors(
        self, page_number: int, x: float, y: float
    ) -> tuple[ReferenceAnchor | None, ReferenceAnchor | None]:
        """The anchor containing (or nearest) a point, plus the anchor after it."""
        best: ReferenceAnchor | None = None
        best_x = math.inf
        nearest: ReferenceAnchor | None = None
        nearest_distance = math.inf

        for anchor in self._by_page.get(page_number, []):
            for page_range in anchor.page_ranges:
                if page_range.page_number != page_number:
                    continue
                for rect in page_range.rects:
                    dx = _axis_distance(x, rect.x, rect.right)
                    if rect.y <= y <= rect.bottom and dx < best_x:
                        best, best_x = anchor, dx
                    dy = _axis_distance(y, rect.y, rect.bottom)
                    distance = math.hypot(dx, dy)
                    if distance < nearest_distance:
                        nearest, nearest_distance = anchor, distance

        found = best or nearest
        if found is None:
            return None, None
        return found, self.next_anchor(found)

    def match_citation_to_reference(self, author: str, year: str) -> ReferenceAnchor | None:
        """Anchor for an author-year citation.

        Anchors are filtered by year; a unique hit wins outright. Among
        several, a first author starting with the cited surname beats one
        merely mentioning it; failing both, the first same-year anchor.
        """
        if not year:
            return None
        same_year = [a for a in self.anchors if years_match(year, a.year)]
        if len(same_year) <= 1:
            return same_year[0] if same_year else None

        key = surname_key(clean_cited_author(author or ""))
        key = key.split()[0] if key else ""
        if key:
            for anchor in same_year:
                if anchor.first_author and surname_key(anchor.first_author).startswith(key):
                    return anchor
            for anchor in same_year:
                if key in anchor.authors or key in surname_key(anchor.text):
                    return anchor
        return same_year[0]

    def dominant_format(self, sample_size: int = 25) -> str:
        """``numbered`` or ``author-year``, judged from the leading anchors' text."""
        sample = self.anchors[:sample_size]
        if not sample:
            return "numbered" if self.is_numbered else AUTHOR_YEAR_FORMAT
        numbered = 0
        for anchor in sample:
            head = anchor.text.lstrip()
            if head.startswith("[") or (head.startswith("(") and head[1:2].isdigit()):
                numbered += 1
            elif head[:1].isdigit() and "." in head[:6]:
                numbered += 1
        return "numbered" if numbered * 2 > len(sample) else AUTHOR_YEAR_FORMAT


def build_reference_index(
    layouts: Sequence[PageLayout],
    body: BodyFontStats,
    lexicon: Lexicon,
    config: ReferenceConfig | None = None,
    baseline_pitch: float = 0.0,
) -> ReferenceIndex:
    """Locate the bibliography and extract its anchors."""
    config = config or ReferenceConfig()
    log: list[str] = []

    section = ReferenceSectionLocator(lexicon, config).locate(layouts, body)
    if section is None:
        log.append("No bibliography section found")
        return ReferenceIndex(processing_log=log)

    log.append(
        f"Bibliography '{section.heading}' on pages {section.start_page}-{section.end_page} "
        f"({len(section.lines)} lines, confidence {section.confidence:.2f})"
    )
    anchors, fmt_name = ReferenceAnchorExtractor(lexicon, config).extract(section, baseline_pitch)
    log.append(f"Format {fmt_name}: {len(anchors)} anchors")
    logger.info(
        "Bibliography located on pages %d-%d: %d anchors (%s)",
        section.start_page,
        section.end_page,
        len(anchors),
        fmt_name,
    )
    return ReferenceIndex(section=section, anchors=anchors, format=fmt_name, processing_log=log)
