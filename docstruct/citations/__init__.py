"""
Inline citation detection, matching and native link fusion.
"""

from docstruct.citations.detectors import (
    AuthorYearCitationDetector,
    CitationChunk,
    ClaimedRanges,
    NumericCitationDetector,
    ParsedNumbers,
    SuperscriptCitationDetector,
    parse_numeric_content,
)
from docstruct.citations.fusion import (
    CitationLinkFuser,
    IndexedLink,
    anchor_at_destination,
    index_links,
)
from docstruct.citations.resolver import CitationResolver, body_page_text, compare_positions

__all__ = [
    # Resolver
    "CitationResolver",
    "body_page_text",
    "compare_positions",
    # Detectors
    "NumericCitationDetector",
    "AuthorYearCitationDetector",
    "SuperscriptCitationDetector",
    "ClaimedRanges",
    "CitationChunk",
    "ParsedNumbers",
    "parse_numeric_content",
    # Native links
    "CitationLinkFuser",
    "IndexedLink",
    "index_links",
    "anchor_at_destination",
]
