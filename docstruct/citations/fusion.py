"""
Native hyperlink fusion.

Link annotations the document already carries are an independent signal:
a detected citation sitting under a link into the bibliography gets a
confidence boost and the link's destination as its navigation target,
and a bibliography link nobody detected becomes a citation of its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from docstruct.config import CitationConfig
from docstruct.context import DocumentContext, LinkDestination, NativeLink
from docstruct.models import (
    Citation,
    CitationFlags,
    CitationTarget,
    CitationType,
    RefKey,
    ReferenceAnchor,
)
from docstruct.references.anchors import ReferenceIndex
from docstruct.scoring import boost

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedLink:
    """A native link with a usable destination on a given page."""

    page_number: int
    link: NativeLink
    destination: LinkDestination


def index_links(
    context: DocumentContext, references: ReferenceIndex, tolerance: float = 0.0
) -> tuple[dict[int, list[IndexedLink]], dict[int, list[IndexedLink]]]:
    """Split internal links into bibliography links and everything else.

    Bibliography links sit before the bibliography and point into it.
    Links pointing into the bibliography from within it are dropped;
    every other internal link, including one into an appendix after the
    bibliography, goes to the second map. Links without a valid
    destination (missing, or reported at 0, 0) are left out of both.
    ``tolerance`` widens the section's vertical bounds on its first and
    last page.
    """
    bibliography: dict[int, list[IndexedLink]] = {}
    other: dict[int, list[IndexedLink]] = {}
    section = references.section

    for page_number in context.page_numbers:
        for link in context.get_links(page_number):
            destination = link.destination
            if destination is None or not destination.is_valid:
                continue
            indexed = IndexedLink(page_number, link, destination)
            if section is None or not section.contains(
                destination.page_number, destination.y, tolerance
            ):
                other.setdefault(page_number, []).append(indexed)
            elif page_number < section.start_page:
                bibliography.setdefault(page_number, []).append(indexed)
    return bibliography, other


def anchor_at_destination(
    references: ReferenceIndex, destination: LinkDestination, max_distance: float
) -> ReferenceAnchor | None:
    """Anchor starting closest to the destination point (Manhattan distance)."""
    best = None
    best_distance = max_distance
    for anchor in references.anchors_on_page(destination.page_number):
        if anchor.page_number != destination.page_number:
            continue
        distance = abs(anchor.start_x - destination.x) + abs(anchor.start_y - destination.y)
        if distance < best_distance:
            best, best_distance = anchor, distance
    return best


class CitationLinkFuser:
    """Merges detected citations with native bibliography links."""

    def __init__(self, config: CitationConfig | None = None):
        self.config = config or CitationConfig()

    def fuse(
        self,
        citations: list[Citation],
        links_by_page: dict[int, list[IndexedLink]],
        references: ReferenceIndex,
    ) -> list[Citation]:
        """Boost confirmed citations and append link-only ones. Mutates ``citations``."""
        by_page: dict[int, list[Citation]] = {}
        for citation in citations:
            by_page.setdefault(citation.page_number, []).append(citation)

        confirmed = synthesized = 0
        for page_number, links in links_by_page.items():
            page_citations = by_page.get(page_number, [])
            for indexed in links:
                anchor = anchor_at_destination(
                    references, indexed.destination, self.config.native_anchor_distance
                )
                citation = self._overlapping(page_citations, indexed)
                if citation is not None:
                    self._confirm(citation, indexed, anchor)
                    confirmed += 1
                elif anchor is not None:
                    citations.append(self._synthesize(indexed, anchor))
                    synthesized += 1

        if confirmed or synthesized:
            logger.debug(
                "Native links: %d citations confirmed, %d synthesized", confirmed, synthesized
            )
        return citations

    def _overlapping(self, citations: list[Citation], indexed: IndexedLink) -> Citation | None:
        tolerance = self.config.native_overlap_tolerance
        for citation in citations:
            if any(rect.overlaps(indexed.link.rect, tolerance) for rect in citation.rects):
                return citation
        return None

    def _confirm(
        self, citation: Citation, indexed: IndexedLink, anchor: ReferenceAnchor | None
    ) -> None:
        if citation.has_flag(CitationFlags.NATIVE_CONFIRMED):
            return
        if anchor is not None and anchor.id in citation.anchor_ids:
            citation.confidence = boost(citation.confidence, self.config.native_link_boost)
            citation.flags |= CitationFlags.NATIVE_CONFIRMED | CitationFlags.DEST_CONFIRMED
            citation.target_location = indexed.destination.to_location()
        else:
            citation.flags |= CitationFlags.NATIVE_CONFIRMED

    def _synthesize(self, indexed: IndexedLink, anchor: ReferenceAnchor) -> Citation:
        location = indexed.destination.to_location()
        flags = CitationFlags.NATIVE_CONFIRMED | CitationFlags.DEST_CONFIRMED
        if anchor.index is not None:
            return Citation(
                type=CitationType.NUMERIC,
                text=f"[{anchor.index}]",
                page_number=indexed.page_number,
                rects=[indexed.link.rect],
                confidence=self.config.native_only_confidence,
                ref_indices=[anchor.index],
                anchor_ids=[anchor.id],
                flags=flags,
                target_location=location,
                targets=[CitationTarget(anchor.id, anchor.index, None, location)],
            )

        key = RefKey(anchor.first_author or "", anchor.year or "")
        text = ", ".join(part for part in (anchor.first_author, anchor.year) if part)
        return Citation(
            type=CitationType.AUTHOR_YEAR,
            text=text or anchor.text[:40],
            page_number=indexed.page_number,
            rects=[indexed.link.rect],
            confidence=self.config.native_only_confidence,
            anchor_ids=[anchor.id],
            ref_keys=[key],
            flags=flags,
            target_location=location,
            targets=[CitationTarget(anchor.id, None, key, location)],
        )
