"""
Bibliography analysis: section location, entry segmentation, author/year parsing.
"""

from docstruct.references.anchors import (
    ReferenceAnchorExtractor,
    ReferenceIndex,
    build_reference_index,
    join_line_texts,
)
from docstruct.references.boundaries import (
    BoundaryReason,
    EntryDraft,
    StructuralBoundaryDetector,
    baseline_line_pitch,
)
from docstruct.references.locator import ReferenceSectionLocator
from docstruct.references.parsing import (
    ParsedReference,
    clean_cited_author,
    parse_authors,
    parse_first_author,
    parse_reference,
    strip_numbering,
    surname_key,
)

__all__ = [
    # Locator
    "ReferenceSectionLocator",
    # Anchors
    "ReferenceAnchorExtractor",
    "ReferenceIndex",
    "build_reference_index",
    "join_line_texts",
    # Boundaries
    "StructuralBoundaryDetector",
    "BoundaryReason",
    "EntryDraft",
    "baseline_line_pitch",
    # Parsing
    "ParsedReference",
    "parse_reference",
    "parse_first_author",
    "parse_authors",
    "strip_numbering",
    "surname_key",
    "clean_cited_author",
]
