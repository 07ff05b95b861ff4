"""
docstruct: Structural analysis of PDF documents.

This library reads a PDF's positioned text and recovers the structure a
reader sees: lines in reading order across columns, the bibliography and
its entries, inline citations resolved to those entries, cross-references
to figures, tables, sections and equations, and a document outline.

Example:
    >>> import docstruct
    >>> analyzer = docstruct.analyze("paper.pdf")
    >>> analyzer.build_index()
    >>> for citation in analyzer.get_citations_for_page(2):
    ...     print(citation.text, citation.confidence)
    >>> [node.title for node in analyzer.get_outline()]
"""

from docstruct.analyzer import DocumentAnalyzer, analyze
from docstruct.config import (
    AnalysisConfig,
    CitationConfig,
    IndexingConfig,
    LayoutConfig,
    OutlineConfig,
    ReferenceConfig,
)
from docstruct.context import (
    Bookmark,
    DocumentContext,
    LinkDestination,
    NativeLink,
    PageContent,
)
from docstruct.exceptions import (
    ConfigurationError,
    DocStructError,
    DocumentOpenError,
    ExtractionError,
)
from docstruct.lexicon import Lexicon, load_lexicon
from docstruct.models import (
    # Text & layout
    BodyFontStats,
    # Citations
    Citation,
    CitationFlags,
    CitationTarget,
    CitationType,
    ColumnBoundary,
    # Cross-references
    CrossReference,
    CrossReferenceTarget,
    # Outline & metadata
    DocumentMetadata,
    FontStyle,
    LayoutSegment,
    Line,
    OutlineNode,
    PageLayout,
    Rect,
    RefKey,
    # References
    ReferenceAnchor,
    ReferenceSection,
    SearchMatch,
    TargetLocation,
    TextRun,
)
from docstruct.readers import PDFReader

__version__ = "0.1.0"
__all__ = [
    # Main API
    "analyze",
    "DocumentAnalyzer",
    # Configuration
    "AnalysisConfig",
    "LayoutConfig",
    "IndexingConfig",
    "ReferenceConfig",
    "CitationConfig",
    "OutlineConfig",
    "Lexicon",
    "load_lexicon",
    # Input
    "PDFReader",
    "DocumentContext",
    "PageContent",
    "NativeLink",
    "LinkDestination",
    "Bookmark",
    # Text & layout
    "TextRun",
    "FontStyle",
    "Rect",
    "Line",
    "ColumnBoundary",
    "LayoutSegment",
    "PageLayout",
    "BodyFontStats",
    "SearchMatch",
    # References
    "ReferenceSection",
    "ReferenceAnchor",
    # Citations
    "Citation",
    "CitationType",
    "CitationFlags",
    "CitationTarget",
    "RefKey",
    "TargetLocation",
    # Cross-references
    "CrossReference",
    "CrossReferenceTarget",
    # Outline & metadata
    "OutlineNode",
    "DocumentMetadata",
    # Exceptions
    "DocStructError",
    "DocumentOpenError",
    "ExtractionError",
    "ConfigurationError",
]
