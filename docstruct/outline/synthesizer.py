"""
Outline synthesis.

The cascade:
1. Primary: the document's bookmark tree, when it carries real structure
2. Fallback: heading detection from typography and numbering

A bookmark tree that is a single root with several children is
unwrapped to those children; a single root with at most one child says
nothing about structure and falls through to heading detection.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from docstruct.config import OutlineConfig
from docstruct.context import DocumentContext
from docstruct.lexicon import Lexicon
from docstruct.models import BodyFontStats, OutlineNode, PageLayout
from docstruct.outline.sources import (
    BookmarkSource,
    HeadingDetectionSource,
    OutlineDocument,
    OutlineSource,
)
from docstruct.outline.tree import relevel
from docstruct.outline.validators import VALIDATORS, ValidationIssue, ValidationRule

logger = logging.getLogger(__name__)


@dataclass
class OutlineResult:
    """Result of outline synthesis."""

    nodes: list[OutlineNode]
    source: str | None  # "bookmarks", "heuristic", or None when nothing was found
    validation_issues: list[ValidationIssue] = field(default_factory=list)
    processing_log: list[str] = field(default_factory=list)

    @property
    def node_count(self) -> int:
        return sum(1 for root in self.nodes for _ in root.walk())


class OutlineSynthesizer:
    """Builds the document outline with bookmark-first fallback.

    Usage:
        synthesizer = OutlineSynthesizer(lexicon)
        result = synthesizer.synthesize(context, layouts, body_stats)
        for node in result.nodes:
            print(node.title, node.page_index)
    """

    def __init__(
        self,
        lexicon: Lexicon,
        config: OutlineConfig | None = None,
        *,
        bookmark_source: OutlineSource | None = None,
        heading_source: OutlineSource | None = None,
        validators: list[ValidationRule] | None = None,
    ):
        """Initialize the synthesizer.

        Args:
            lexicon: Compiled pattern table.
            config: Outline options (bookmark use, thresholds, validators).
            bookmark_source: Bookmark source (default creates one).
            heading_source: Heading detection source (default creates one).
            validators: Validation rules (default built from config.validators).
        """
        self.config = config or OutlineConfig()
        self.bookmark_source = bookmark_source or BookmarkSource()
        self.heading_source = heading_source or HeadingDetectionSource(lexicon, self.config)
        if validators is None:
            validators = [VALIDATORS[name]() for name in self.config.validators]
        self.validators = validators

    def synthesize(
        self,
        context: DocumentContext,
        layouts: Sequence[PageLayout],
        body: BodyFontStats,
    ) -> OutlineResult:
        log: list[str] = []
        doc = OutlineDocument(context=context, layouts=layouts, body=body)

        nodes: list[OutlineNode] = []
        source = None
        if self.config.use_bookmarks:
            bookmarks = self._extract_safely(self.bookmark_source, doc, log)
            nodes = self._usable_bookmarks(bookmarks, log)
            if nodes:
                source = self.bookmark_source.name
                log.append(f"Using {len(nodes)} top-level bookmarks")

        if not nodes:
            nodes = self._extract_safely(self.heading_source, doc, log)
            if nodes:
                source = self.heading_source.name
                log.append(f"Detected {len(nodes)} top-level headings")
            else:
                log.append("No headings detected")

        issues = []
        for validator in self.validators:
            issues.extend(validator.check(nodes))
        if issues:
            log.append(f"Validation found {len(issues)} issues")

        result = OutlineResult(
            nodes=nodes, source=source, validation_issues=issues, processing_log=log
        )
        logger.info("Outline: %d nodes from %s", result.node_count, source or "no source")
        return result

    @staticmethod
    def _usable_bookmarks(nodes: list[OutlineNode], log: list[str]) -> list[OutlineNode]:
        if len(nodes) != 1:
            return nodes
        root = nodes[0]
        if len(root.children) > 1:
            log.append(f"Unwrapped single bookmark root '{root.title}'")
            return relevel(root.children)
        log.append("Single bookmark root without structure, using heading detection")
        return []

    def _extract_safely(
        self,
        source: OutlineSource,
        doc: OutlineDocument,
        log: list[str],
    ) -> list[OutlineNode]:
        """Extract with error handling."""
        try:
            return source.extract(doc)
        except Exception as e:
            log.append(f"Source {source.name} failed: {e}")
            logger.warning("Outline source %s failed: %s", source.name, e)
            return []
