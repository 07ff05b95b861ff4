"""
Document analysis orchestrator.

This module provides the main `analyze()` function and the
`DocumentAnalyzer` query facade, wiring together:
- PDFReader (text runs, links, bookmarks)
- TextLayoutIndexer (lines, columns, reading order)
- build_reference_index (bibliography section and anchors)
- CitationResolver / CrossReferenceResolver (inline references)
- OutlineSynthesizer (document outline)

Per-page layout is indexed on demand; whole-document analyses are
computed on first use and cached until a page is re-indexed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TypeVar

from docstruct.citations.fusion import IndexedLink, index_links
from docstruct.citations.resolver import CitationResolver
from docstruct.config import AnalysisConfig
from docstruct.context import DocumentContext
from docstruct.crossrefs import CrossReferenceResolver
from docstruct.exceptions import DocumentOpenError, ExtractionError
from docstruct.layout.indexer import ProgressCallback, TextLayoutIndexer
from docstruct.lexicon import Lexicon, load_lexicon
from docstruct.models import (
    Citation,
    CrossReference,
    DocumentMetadata,
    Line,
    OutlineNode,
    PageLayout,
    ReferenceAnchor,
    SearchMatch,
)
from docstruct.outline.metadata import detect_document_metadata
from docstruct.outline.synthesizer import OutlineResult, OutlineSynthesizer
from docstruct.readers.pdf_reader import PDFReader
from docstruct.references.anchors import ReferenceIndex, build_reference_index
from docstruct.references.boundaries import baseline_line_pitch
from docstruct.search import SearchIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")

LinkSplit = tuple[dict[int, list[IndexedLink]], dict[int, list[IndexedLink]]]


class DocumentAnalyzer:
    """
    Structural analysis of one document.

    Query methods never raise for analysis problems: a stage that fails
    is logged, recorded in ``processing_log`` and replaced by an empty
    result. Out-of-range page numbers give None or an empty list.

    Usage:
        analyzer = DocumentAnalyzer(context)
        analyzer.build_index(lambda done, total: print(f"{done}/{total}"))
        for citation in analyzer.get_citations_for_page(3):
            print(citation.text, citation.confidence)
    """

    def __init__(
        self,
        context: DocumentContext,
        config: AnalysisConfig | None = None,
        lexicon: Lexicon | None = None,
    ):
        self.context = context
        self.config = config or AnalysisConfig()
        self.lexicon = lexicon or load_lexicon(self.config.lexicon_path)
        self.indexer = TextLayoutIndexer(
            context,
            layout_config=self.config.layout,
            indexing_config=self.config.indexing,
        )
        self.search_index = SearchIndex(self.indexer)
        self.processing_log: list[str] = []

        self._lock = threading.RLock()
        self._closed = False
        self._references: ReferenceIndex | None = None
        self._links: LinkSplit | None = None
        self._citations: dict[int, list[Citation]] | None = None
        self._crossrefs: dict[int, list[CrossReference]] | None = None
        self._outline: OutlineResult | None = None
        self._metadata: DocumentMetadata | None = None

    def __enter__(self) -> DocumentAnalyzer:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"DocumentAnalyzer(source={self.context.source!r}, "
            f"pages={self.context.page_count}, indexed={self.indexer.indexed_count})"
        )

    # --------------------------------------------------------
    # Error handling
    # --------------------------------------------------------

    def _safely(self, stage: str, func: Callable[[], T], default: T) -> T:
        """Run a stage; on failure log it and return ``default``."""
        try:
            return func()
        except Exception as e:
            self.processing_log.append(f"{stage} failed: {e}")
            logger.warning("%s failed: %s", stage, e)
            return default

    # --------------------------------------------------------
    # Indexing
    # --------------------------------------------------------

    def build_index(self, progress_callback: ProgressCallback | None = None) -> None:
        """Index every page. Repeated or concurrent calls are no-ops."""
        if self._closed:
            return
        self._safely("Layout indexing", lambda: self.indexer.build(progress_callback), None)
        if self.indexer.is_built:
            self._note(f"Indexed {self.context.page_count} pages")

    def ensure_page_indexed(self, page_number: int) -> PageLayout | None:
        """Layout of one page, indexing it first if needed."""
        return self._safely(
            f"Indexing page {page_number}",
            lambda: self.indexer.ensure_page_indexed(page_number),
            None,
        )

    def ensure_pages_indexed(self, page_numbers: Iterable[int]) -> list[PageLayout]:
        numbers = list(page_numbers)
        return self._safely(
            "Indexing pages", lambda: self.indexer.ensure_pages_indexed(numbers), []
        )

    def reindex_page(self, page_number: int) -> PageLayout | None:
        """Drop one page's layout and every whole-document analysis, then re-index it."""
        if not self.context.has_page(page_number):
            return None
        with self._lock:
            self.indexer.invalidate(page_number)
            self.search_index.invalidate(page_number)
            self._reset_derived()
        return self.ensure_page_indexed(page_number)

    def close(self) -> None:
        """Drop all state; an in-flight build stops at its next batch boundary."""
        with self._lock:
            self._closed = True
            self.indexer.close()
            self.search_index.invalidate()
            self._reset_derived()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _reset_derived(self) -> None:
        self._references = None
        self._links = None
        self._citations = None
        self._crossrefs = None
        self._outline = None
        self._metadata = None

    def _all_layouts(self) -> list[PageLayout]:
        self.build_index()
        # A build running on another thread returns immediately; fill the gaps here
        return self.ensure_pages_indexed(self.context.page_numbers)

    def _note(self, message: str) -> None:
        if message not in self.processing_log:
            self.processing_log.append(message)

    # --------------------------------------------------------
    # Page queries
    # --------------------------------------------------------

    def get_ordered_lines(self, page_number: int) -> list[Line] | None:
        """Lines of a page in reading order; None for an unknown page."""
        layout = self.ensure_page_indexed(page_number)
        return list(layout.lines) if layout is not None else None

    def search(
        self, query: str, from_page: int = 1, to_page: int | None = None
    ) -> list[SearchMatch]:
        """Case-insensitive substring search with per-match rectangles."""
        if self._closed:
            return []
        return self._safely(
            "Search", lambda: self.search_index.search(query, from_page, to_page), []
        )

    # --------------------------------------------------------
    # References
    # --------------------------------------------------------

    def get_reference_index(self) -> ReferenceIndex:
        with self._lock:
            if self._references is None:
                self._references = self._safely(
                    "Reference analysis", self._build_references, ReferenceIndex.empty()
                )
                self.processing_log.extend(self._references.processing_log)
            return self._references

    def _build_references(self) -> ReferenceIndex:
        layouts = self._all_layouts()
        pitch = baseline_line_pitch(self.indexer.iter_lines())
        return build_reference_index(
            layouts, self.indexer.body_stats, self.lexicon, self.config.references, pitch
        )

    def get_reference_anchors(self, page_number: int) -> list[ReferenceAnchor]:
        """Bibliography entries with at least one line on the page."""
        if not self.context.has_page(page_number):
            return []
        return self.get_reference_index().anchors_on_page(page_number)

    def match_citation_to_reference(self, author: str, year: str) -> ReferenceAnchor | None:
        return self._safely(
            "Citation matching",
            lambda: self.get_reference_index().match_citation_to_reference(author, year),
            None,
        )

    def find_reference_by_index(self, index: int) -> ReferenceAnchor | None:
        return self.get_reference_index().find_reference_by_index(index)

    def find_bounding_anchors(
        self, page_number: int, x: float, y: float
    ) -> tuple[ReferenceAnchor | None, ReferenceAnchor | None]:
        """The anchor at (or nearest) a point and the one after it."""
        return self.get_reference_index().find_bounding_anchors(page_number, x, y)

    # --------------------------------------------------------
    # Citations & cross-references
    # --------------------------------------------------------

    def _link_split(self) -> LinkSplit:
        with self._lock:
            if self._links is None:
                references = self.get_reference_index()
                self._links = self._safely(
                    "Native link indexing",
                    lambda: index_links(
                        self.context, references, self.config.citations.native_overlap_tolerance
                    ),
                    ({}, {}),
                )
            return self._links

    def _all_citations(self) -> dict[int, list[Citation]]:
        with self._lock:
            if self._citations is None:
                self._citations = self._safely("Citation resolution", self._resolve_citations, {})
                total = sum(len(c) for c in self._citations.values())
                self._note(f"Resolved {total} citations")
            return self._citations

    def _resolve_citations(self) -> dict[int, list[Citation]]:
        references = self.get_reference_index()
        bibliography_links, _ = self._link_split()
        resolver = CitationResolver(self.lexicon, self.config.citations)
        return resolver.resolve(
            self._all_layouts(), references, self.indexer.body_stats, bibliography_links
        )

    def get_citations_for_page(self, page_number: int) -> list[Citation]:
        """Inline citations on a page, top to bottom then left to right."""
        if not self.context.has_page(page_number):
            return []
        return list(self._all_citations().get(page_number, []))

    def _all_crossrefs(self) -> dict[int, list[CrossReference]]:
        with self._lock:
            if self._crossrefs is None:
                self._crossrefs = self._safely(
                    "Cross-reference resolution", self._resolve_crossrefs, {}
                )
                total = sum(len(c) for c in self._crossrefs.values())
                self._note(f"Resolved {total} cross-references")
            return self._crossrefs

    def _resolve_crossrefs(self) -> dict[int, list[CrossReference]]:
        references = self.get_reference_index()
        _, other_links = self._link_split()
        resolver = CrossReferenceResolver(
            self.lexicon, self.config.citations.native_overlap_tolerance
        )
        return resolver.resolve(
            self._all_layouts(), self.indexer.body_stats, references, other_links
        )

    def get_cross_references_for_page(self, page_number: int) -> list[CrossReference]:
        """Figure/table/section/... references on a page, in reading order."""
        if not self.context.has_page(page_number):
            return []
        return list(self._all_crossrefs().get(page_number, []))

    # --------------------------------------------------------
    # Outline & metadata
    # --------------------------------------------------------

    def get_outline_result(self) -> OutlineResult:
        with self._lock:
            if self._outline is None:
                self._outline = self._safely(
                    "Outline synthesis",
                    self._synthesize_outline,
                    OutlineResult(nodes=[], source=None),
                )
                self.processing_log.extend(self._outline.processing_log)
            return self._outline

    def _synthesize_outline(self) -> OutlineResult:
        synthesizer = OutlineSynthesizer(self.lexicon, self.config.outline)
        return synthesizer.synthesize(
            self.context, self._all_layouts(), self.indexer.body_stats
        )

    def get_outline(self) -> list[OutlineNode]:
        """Top-level outline nodes (children nested)."""
        return self.get_outline_result().nodes

    def get_document_metadata(self) -> DocumentMetadata:
        """Detected title, abstract location and engine metadata."""
        with self._lock:
            if self._metadata is None:
                self._metadata = self._safely(
                    "Metadata detection",
                    lambda: detect_document_metadata(
                        self.ensure_pages_indexed(range(1, 4)), self.lexicon, self.context
                    ),
                    DocumentMetadata(
                        page_count=self.context.page_count, raw=dict(self.context.metadata)
                    ),
                )
            return self._metadata


def analyze(
    source: str | Path,
    config: AnalysisConfig | None = None,
) -> DocumentAnalyzer:
    """
    Open a PDF and return an analyzer over it.

    This is the main entry point for docstruct. Nothing is analyzed
    until the first query (or an explicit ``build_index()``).

    Args:
        source: Path to a PDF file
        config: Analysis configuration (uses defaults if None)

    Returns:
        DocumentAnalyzer for the document

    Raises:
        FileNotFoundError: If source doesn't exist
        DocumentOpenError: If the PDF cannot be opened (when on_extraction_error="raise")
        ExtractionError: If reading fails otherwise (when on_extraction_error="raise")

    Example:
        >>> analyzer = analyze("paper.pdf")
        >>> analyzer.build_index()
        >>> [node.title for node in analyzer.get_outline()]
    """
    source = Path(source)
    config = config or AnalysisConfig()

    if not source.exists():
        raise FileNotFoundError(f"Source file not found: {source}")

    lexicon = load_lexicon(config.lexicon_path)
    try:
        context = PDFReader().read(source)
    except Exception as e:
        if config.on_extraction_error == "raise":
            if isinstance(e, DocumentOpenError):
                raise
            raise ExtractionError(f"Failed to read {source}: {e}") from e
        if config.on_extraction_error == "warn":
            logger.warning("Extraction error for %s: %s", source, e)
        analyzer = DocumentAnalyzer(DocumentContext.empty(str(source)), config, lexicon)
        analyzer.processing_log.append(f"Extraction failed: {e}")
        return analyzer

    return DocumentAnalyzer(context, config, lexicon)
