"""
Outline sources.

Each source proposes an outline from different evidence:
- BookmarkSource: the document's own bookmark tree (authoritative when present)
- HeadingDetectionSource: typography and numbering heuristics (always available)

Sources return an empty list when they have nothing to offer; the
synthesizer decides which one to use.
"""

from __future__ import annotations

import itertools
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from docstruct.config import OutlineConfig
from docstruct.context import Bookmark, DocumentContext
from docstruct.lexicon import Lexicon
from docstruct.models import BodyFontStats, Line, OutlineNode, PageLayout
from docstruct.outline.levels import assign_levels
from docstruct.outline.tree import (
    LeveledHeading,
    build_tree,
    node_id,
    number_depth,
    prune_reference_children,
)

TOP_BAND_RATIO = 0.08  # running heads
BOTTOM_BAND_RATIO = 0.95  # page numbers, footers
TITLE_AREA_RATIO = 0.3  # page 1 title block when no abstract heading is found
MAX_HEADING_LENGTH = 100
MAX_UNNUMBERED_LENGTH = 80
ABSTRACT_SEARCH_PAGES = 2

_WORD_SPLIT = re.compile(r"[\s.]+")


@dataclass
class OutlineDocument:
    """What an outline source reads."""

    context: DocumentContext
    layouts: Sequence[PageLayout]
    body: BodyFontStats


@dataclass
class HeadingCandidate:
    """A line that looks like a section heading."""

    title: str
    text: str
    page_number: int
    x: float
    y: float
    font_size: float
    line_height: float
    is_numbered: bool = False
    number_prefix: str | None = None
    number_depth: int = 0
    evidence: dict = field(default_factory=dict)

    @property
    def page_index(self) -> int:
        return self.page_number - 1


class OutlineSource(ABC):
    """Abstract base for outline sources."""

    name: str = "base"

    @abstractmethod
    def extract(self, doc: OutlineDocument) -> list[OutlineNode]:
        """Propose an outline forest.

        Should return an empty list if the source can't detect anything
        (graceful degradation).
        """
        pass


class BookmarkSource(OutlineSource):
    """Outline from the document's bookmark tree.

    Destinations were resolved when the document was read (including
    named destinations); a bookmark without one points at page 1.
    """

    name = "bookmarks"

    def extract(self, doc: OutlineDocument) -> list[OutlineNode]:
        """Convert bookmarks to outline nodes, levels by depth."""
        counter = itertools.count()
        return self._convert(doc.context.bookmarks, 1, counter)

    def _convert(
        self, bookmarks: Sequence[Bookmark], level: int, counter: Iterator[int]
    ) -> list[OutlineNode]:
        nodes = []
        for bookmark in bookmarks:
            destination = bookmark.destination
            page_index = destination.page_index if destination else 0
            left = destination.x if destination else 0.0
            top = destination.y if destination else 0.0
            title = bookmark.title.strip() or "Untitled"
            node = OutlineNode(
                id=node_id(title, page_index, left, top, next(counter)),
                title=title,
                page_index=page_index,
                left=left,
                top=top,
                level=level,
            )
            node.children = self._convert(bookmark.children, level + 1, counter)
            nodes.append(node)
        return nodes


class HeadingDetectionSource(OutlineSource):
    """Detect headings from typography and section numbering.

    A line is a candidate when it is one of:
    - numbered (``2.1 Method``): short, at the column start, bold or all caps
    - unnumbered and typographically loud: larger, bold, short, at the column start
    - a short bold Title Case line that is not smaller than body text
    - a known section name (``Related Work``, ``结论``) with any font differentiation

    Candidates are leveled by font-size tier and numbering depth, then
    assembled into a tree.
    """

    name = "heuristic"

    def __init__(self, lexicon: Lexicon, config: OutlineConfig | None = None):
        """Initialize heading detector.

        Args:
            lexicon: Compiled pattern table (numbering, section names, skip prefixes).
            config: Thresholds for short lines, font ratios and tier clustering.
        """
        self.lexicon = lexicon
        self.config = config or OutlineConfig()

    def extract(self, doc: OutlineDocument) -> list[OutlineNode]:
        """Detect, level and assemble headings."""
        candidates = self.collect_candidates(doc.layouts, doc.body)
        if not candidates:
            return []

        levels = assign_levels(candidates, self.config.relative_tier_threshold)
        headings = [
            LeveledHeading(
                title=c.title,
                page_index=c.page_index,
                left=c.x,
                top=c.y,
                level=level,
                number_prefix=c.number_prefix,
            )
            for c, level in zip(candidates, levels)
        ]
        nodes = build_tree(headings, self.config.max_top_level_jump)
        return prune_reference_children(nodes, self.lexicon)

    def collect_candidates(
        self, layouts: Sequence[PageLayout], body: BodyFontStats
    ) -> list[HeadingCandidate]:
        """Heading candidates in document order, front matter skipped."""
        abstract = self._find_abstract(layouts)
        start_page = abstract.page_number if abstract else 1

        candidates = []
        for layout in layouts:
            if layout.page_number < start_page:
                continue
            for line in layout.lines:
                if abstract is not None and line.page_number == abstract.page_number:
                    if line.y < abstract.y:
                        continue
                elif abstract is None and layout.page_number == 1:
                    if line.y < layout.height * TITLE_AREA_RATIO:
                        continue
                candidate = self.analyze_line(line, layout, body)
                if candidate is not None:
                    candidates.append(candidate)
        return candidates

    def _find_abstract(self, layouts: Sequence[PageLayout]) -> Line | None:
        for layout in layouts:
            if layout.page_number > ABSTRACT_SEARCH_PAGES:
                break
            for line in layout.lines:
                text = self.lexicon.strip_section_number(line.text)
                if self.lexicon.abstract_heading.match(text):
                    return line
        return None

    def analyze_line(
        self, line: Line, layout: PageLayout, body: BodyFontStats
    ) -> HeadingCandidate | None:
        """Classify one line; None when it is not a heading."""
        text = line.text.strip()
        if len(text) < 2 or len(text) > MAX_HEADING_LENGTH or not line.runs:
            return None
        height = layout.height
        if height and (line.y < height * TOP_BAND_RATIO or line.y > height * BOTTOM_BAND_RATIO):
            return None
        if self.lexicon.outline_skip.match(text):
            return None

        config = self.config
        is_numbered = bool(self.lexicon.outline_numbered.match(text))
        styled = line.runs[0].style.is_bold
        smaller = line.line_height < body.line_height * config.smaller_font_ratio
        larger = line.line_height > body.line_height * config.larger_font_ratio
        width = layout.width or line.right
        short = line.width < width * config.short_line_ratio

        prefix = None
        if is_numbered:
            match = self.lexicon.outline_prefix.match(text)
            prefix = match.group(1).rstrip() if match else None
            rest = text[match.end() :].strip() if match else text
            if not rest or not rest[0].isupper():
                return None
            if not (short and line.is_at_line_start and (styled or line.is_all_caps)):
                return None
            title = f"{prefix} {rest}" if prefix else text
        else:
            loud = larger and styled and short and line.is_at_line_start
            loud = loud and len(text) < MAX_UNNUMBERED_LENGTH
            title_case = not smaller and short and styled and self.is_title_case(text)
            differentiated = styled or larger or line.is_all_caps or not line.is_common_font
            common = short and differentiated and self._is_common_section_name(text)
            if not (loud or title_case or common):
                return None
            title = text

        return HeadingCandidate(
            title=title,
            text=text,
            page_number=line.page_number,
            x=line.x,
            y=line.y,
            font_size=line.font_size,
            line_height=line.line_height,
            is_numbered=is_numbered,
            number_prefix=prefix,
            number_depth=number_depth(prefix),
            evidence={
                "bold": styled,
                "larger": larger,
                "short": short,
                "all_caps": line.is_all_caps,
            },
        )

    def _is_common_section_name(self, text: str) -> bool:
        # Section names are capitalised; CJK has no case
        if text[:1].islower():
            return False
        return self.lexicon.is_common_section_name(text)

    def is_title_case(self, text: str) -> bool:
        """At least ``title_case_ratio`` of two or more words start upper case."""
        if len(text) < 5:
            return False
        words = [w for w in _WORD_SPLIT.split(text) if w]
        if len(words) < 2:
            return False
        upper = sum(1 for w in words if w[0].isupper())
        return upper >= len(words) * self.config.title_case_ratio
