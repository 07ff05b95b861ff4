"""
Document outline synthesis.

Cascading outline detection:
- Primary: the document's bookmark tree
- Fallback: heading detection (font tiers + section numbering)

Also detects the document title and abstract location.
"""

from docstruct.outline.levels import assign_levels, cluster_sizes
from docstruct.outline.metadata import (
    clean_title,
    detect_abstract,
    detect_document_metadata,
    detect_title,
)
from docstruct.outline.sources import (
    BookmarkSource,
    HeadingCandidate,
    HeadingDetectionSource,
    OutlineDocument,
    OutlineSource,
)
from docstruct.outline.synthesizer import OutlineResult, OutlineSynthesizer
from docstruct.outline.tree import (
    LeveledHeading,
    build_tree,
    is_prefix_compatible,
    node_id,
    number_depth,
    parse_prefix,
    prune_reference_children,
)
from docstruct.outline.validators import (
    HierarchyValidator,
    PageOrderValidator,
    TitleQualityValidator,
    ValidationIssue,
    ValidationRule,
)

__all__ = [
    # Main synthesizer
    "OutlineSynthesizer",
    "OutlineResult",
    # Sources
    "OutlineSource",
    "OutlineDocument",
    "BookmarkSource",
    "HeadingDetectionSource",
    "HeadingCandidate",
    # Levels and tree
    "cluster_sizes",
    "assign_levels",
    "LeveledHeading",
    "build_tree",
    "parse_prefix",
    "number_depth",
    "is_prefix_compatible",
    "prune_reference_children",
    "node_id",
    # Validators
    "ValidationRule",
    "ValidationIssue",
    "HierarchyValidator",
    "TitleQualityValidator",
    "PageOrderValidator",
    # Metadata
    "detect_document_metadata",
    "detect_title",
    "detect_abstract",
    "clean_title",
]
