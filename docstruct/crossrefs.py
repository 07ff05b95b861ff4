"""
Cross-reference resolution.

Definition sites (captions, theorem heads, numbered headings, equation
numbers) are collected first; in-text references such as ``Figure 3`` or
``Lemma 2.1`` are then matched to them by ``(type, label, id)``. A native
link under a reference confirms it and supplies the exact destination.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Sequence

from docstruct.citations.fusion import IndexedLink
from docstruct.citations.resolver import body_page_text, compare_positions
from docstruct.config import CitationConfig
from docstruct.lexicon import CrossRefPattern, Lexicon
from docstruct.models import (
    BodyFontStats,
    CitationFlags,
    CrossReference,
    CrossReferenceTarget,
    Line,
    PageLayout,
)
from docstruct.references.anchors import ReferenceIndex
from docstruct.scoring import crossref_confidence
from docstruct.text import PageText

logger = logging.getLogger(__name__)

MIN_DEFINITION_LENGTH = 5
MAX_CAPTION_LEAD = 15  # characters in a caption's first run
MAX_HEADING_LENGTH = 100
LARGER_FONT_RATIO = 1.05
# Links are the same annotations citation fusion reads, so they share its slack
DEFAULT_LINK_TOLERANCE = CitationConfig.native_overlap_tolerance

DefinitionKey = tuple[str, str, str]


def _is_styled(line: Line, body: BodyFontStats) -> tuple[bool, bool]:
    """(bold or italic lead run, lead run larger than body)."""
    first = line.runs[0]
    styled = first.style.is_bold or first.style.is_italic
    return styled, first.font_size > body.font_size * LARGER_FONT_RATIO


class CrossReferenceResolver:
    """Finds figure/table/section/equation/algorithm/theorem/appendix references.

    Usage:
        resolver = CrossReferenceResolver(lexicon)
        by_page = resolver.resolve(layouts, body, references, crossref_links)
    """

    def __init__(self, lexicon: Lexicon, link_tolerance: float = DEFAULT_LINK_TOLERANCE):
        self.lexicon = lexicon
        self.link_tolerance = link_tolerance  # link rect vs. reference rect slack, points
        self.targets: dict[DefinitionKey, CrossReferenceTarget] = {}

    # --------------------------------------------------------
    # Definitions
    # --------------------------------------------------------

    def find_definitions(
        self, layouts: Sequence[PageLayout], body: BodyFontStats
    ) -> dict[DefinitionKey, CrossReferenceTarget]:
        """First styled definition per ``(type, label, id)`` in document order."""
        targets: dict[DefinitionKey, CrossReferenceTarget] = {}
        for layout in layouts:
            for line in layout.lines:
                if not line.runs or len(line.text) < MIN_DEFINITION_LENGTH:
                    continue
                for pattern in self.lexicon.cross_reference_definitions:
                    match = pattern.pattern.match(line.text)
                    if match and self._is_definition(line, pattern.type, body):
                        label, target_id = pattern.extract(match)
                        self._add(targets, line, pattern.type, label, target_id)
                self._numbered_heading(targets, line, body)
                self._equation_number(targets, line, layout)
        return targets

    @staticmethod
    def _is_definition(line: Line, ref_type: str, body: BodyFontStats) -> bool:
        styled, larger = _is_styled(line, body)
        if ref_type == "section":
            return True  # § at the start of a line
        if ref_type in ("figure", "table"):
            return styled and len(line.runs[0].text) < MAX_CAPTION_LEAD
        return styled or larger

    def _numbered_heading(
        self, targets: dict[DefinitionKey, CrossReferenceTarget], line: Line, body: BodyFontStats
    ) -> None:
        if len(line.text) > MAX_HEADING_LENGTH:
            return
        match = self.lexicon.numbered_heading_definition.match(line.text)
        if not match:
            return
        styled, larger = _is_styled(line, body)
        if styled or larger or line.is_all_caps:
            self._add(targets, line, "section", "section", match.group(1))

    def _equation_number(
        self, targets: dict[DefinitionKey, CrossReferenceTarget], line: Line, layout: PageLayout
    ) -> None:
        match = self.lexicon.equation_number.search(line.text)
        if not match:
            return
        last = line.runs[-1]
        # Equation numbers sit flush right, apart from the formula
        if layout.width and last.right < layout.width * 0.6:
            return
        self._add(targets, line, "equation", "equation", match.group(1))

    @staticmethod
    def _add(
        targets: dict[DefinitionKey, CrossReferenceTarget],
        line: Line,
        ref_type: str,
        label: str,
        target_id: str,
    ) -> None:
        key = (ref_type, label, target_id)
        if key not in targets:
            targets[key] = CrossReferenceTarget(
                type=ref_type,
                target_id=target_id,
                label=label,
                page_number=line.page_number,
                x=line.x,
                y=line.y,
                text=line.text,
            )

    # --------------------------------------------------------
    # References
    # --------------------------------------------------------

    def resolve(
        self,
        layouts: Sequence[PageLayout],
        body: BodyFontStats,
        references: ReferenceIndex | None = None,
        links: dict[int, list[IndexedLink]] | None = None,
    ) -> dict[int, list[CrossReference]]:
        """Cross-references grouped by page number, each page in reading order."""
        references = references or ReferenceIndex()
        self.targets = self.find_definitions(layouts, body)
        definition_lines = {
            (target.page_number, target.y, target.text) for target in self.targets.values()
        }

        found: dict[str, CrossReference] = {}
        for layout in layouts:
            if layout.is_empty:
                continue
            page_text = body_page_text(layout, references)
            for pattern in self.lexicon.cross_references:
                for ref in self._scan(page_text, pattern, definition_lines):
                    rect = ref.rects[0]
                    found.setdefault(f"{ref.page_number}:{round(rect.x)}:{round(rect.y)}", ref)

        crossrefs = list(found.values())
        self._fuse(crossrefs, links or {})
        for ref in crossrefs:
            target = self.targets.get(ref.key)
            if ref.target_location is None and target is not None:
                ref.target_location = target.location
            ref.confidence = crossref_confidence(target is not None, ref.has_native)

        by_page: dict[int, list[CrossReference]] = {}
        for ref in crossrefs:
            by_page.setdefault(ref.page_number, []).append(ref)
        for page_refs in by_page.values():
            page_refs.sort(key=functools.cmp_to_key(compare_positions))

        logger.info(
            "Resolved %d cross-references (%d definitions)", len(crossrefs), len(self.targets)
        )
        return by_page

    @staticmethod
    def _scan(
        page_text: PageText, pattern: CrossRefPattern, definition_lines: set[tuple]
    ) -> list[CrossReference]:
        refs = []
        for match in pattern.pattern.finditer(page_text.text):
            line = page_text.line_at(match.start())
            if line is not None and (line.page_number, line.y, line.text) in definition_lines:
                continue
            rects = page_text.rects_for_span(match.start(), match.end())
            if not rects:
                continue
            label, target_id = pattern.extract(match)
            refs.append(
                CrossReference(
                    type=pattern.type,
                    text=match.group(0),
                    target_id=target_id,
                    label=label,
                    page_number=page_text.page_number,
                    rects=rects,
                    confidence=0.0,
                )
            )
        return refs

    def _fuse(self, crossrefs: list[CrossReference], links: dict[int, list[IndexedLink]]) -> None:
        # Link-only cross-references are not synthesized: without text the type is unknown
        tolerance = self.link_tolerance
        for page_number, page_links in links.items():
            candidates = [ref for ref in crossrefs if ref.page_number == page_number]
            for indexed in page_links:
                for ref in candidates:
                    if ref.has_native:
                        continue
                    if any(rect.overlaps(indexed.link.rect, tolerance) for rect in ref.rects):
                        ref.flags |= CitationFlags.NATIVE_CONFIRMED | CitationFlags.DEST_CONFIRMED
                        ref.target_location = indexed.destination.to_location()
                        break
