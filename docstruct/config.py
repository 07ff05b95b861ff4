"""
Configuration for docstruct document analysis.

Every threshold used by the analysis stages lives here as a named
field. Defaults are tuned for born-digital scholarly articles; treat
them as tunable rather than load-bearing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from docstruct.exceptions import ConfigurationError


def _require_ratio(name: str, value: float, *, upper: float = 1.0) -> None:
    if value < 0.0 or value > upper:
        raise ConfigurationError(f"{name} must be between 0.0 and {upper}, got {value}")


def _require_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value}")


@dataclass
class LayoutConfig:
    """
    Line grouping and column detection thresholds.

    Example:
        >>> LayoutConfig(gutter_line_threshold=0.1)  # looser gutter acceptance
    """

    # Line grouping: a run joins the current line if the vertical centres differ by
    # at most max(min, font_size * ratio). Span boxes include ascender and descender,
    # so they overlap the neighbouring lines at normal leading.
    line_merge_min_threshold: float = 2.0
    line_merge_size_ratio: float = 0.5

    # Gutter candidates
    min_lines_for_columns: int = 10
    gutter_median_ratio: float = 1.8  # largest gap vs. median gap on the line
    gutter_line_width_ratio: float = 0.03  # largest gap vs. line width

    # Gutter acceptance
    cluster_tolerance_ratio: float = 0.04  # of page width
    gutter_line_threshold: float = 0.25  # share of eligible lines
    min_vertical_coverage: float = 0.2  # share of page height
    gutter_edge_margin_ratio: float = 0.1  # distance from either page edge
    max_columns: int = 3
    min_column_width_ratio: float = 0.15  # of content width
    max_column_width_ratio: float = 0.7

    # Reading order
    full_width_threshold: float = 0.65  # of content width
    band_gap_ratio: float = 3.0  # vertical gap (x average run height) that opens a new band

    # Body font statistics
    common_font_tolerance: float = 0.5  # points

    # Runs starting with these prefixes are dropped (arXiv side stamps)
    skip_prefixes: tuple[str, ...] = ("arXiv:",)

    def __post_init__(self):
        """Validate configuration."""
        _require_positive("line_merge_min_threshold", self.line_merge_min_threshold)
        _require_positive("line_merge_size_ratio", self.line_merge_size_ratio)
        if self.min_lines_for_columns < 1:
            raise ConfigurationError(
                f"min_lines_for_columns must be >= 1, got {self.min_lines_for_columns}"
            )
        _require_positive("gutter_median_ratio", self.gutter_median_ratio)
        for name in (
            "gutter_line_width_ratio",
            "cluster_tolerance_ratio",
            "gutter_line_threshold",
            "min_vertical_coverage",
            "full_width_threshold",
        ):
            _require_ratio(name, getattr(self, name))
        _require_ratio("gutter_edge_margin_ratio", self.gutter_edge_margin_ratio, upper=0.5)
        if self.max_columns < 1:
            raise ConfigurationError(f"max_columns must be >= 1, got {self.max_columns}")
        _require_ratio("min_column_width_ratio", self.min_column_width_ratio)
        _require_ratio("max_column_width_ratio", self.max_column_width_ratio)
        if self.min_column_width_ratio > self.max_column_width_ratio:
            raise ConfigurationError(
                "min_column_width_ratio must not exceed max_column_width_ratio, got "
                f"{self.min_column_width_ratio} > {self.max_column_width_ratio}"
            )
        _require_positive("band_gap_ratio", self.band_gap_ratio)
        if self.common_font_tolerance < 0:
            raise ConfigurationError(
                f"common_font_tolerance must be >= 0, got {self.common_font_tolerance}"
            )


@dataclass
class IndexingConfig:
    """Page-batched indexing options."""

    batch_size: int = 6  # pages per batch; progress is reported between batches
    max_workers: int = 4  # worker threads per batch (1 = sequential)

    def __post_init__(self):
        """Validate configuration."""
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")


@dataclass
class ReferenceConfig:
    """Bibliography location and segmentation thresholds."""

    skip_leading_pages: int = 2  # bibliography headings on these pages are ignored
    heading_size_ratio: float = 1.05  # start heading: font larger than body by this factor
    end_heading_size_ratio: float = 1.1  # next heading after the bibliography

    # Format detection
    format_sample_size: int = 20
    format_min_share: float = 0.2

    # Structural boundary detection
    gap_break_ratio: float = 1.5  # vertical gap vs. baseline gap that forces a new entry
    short_line_ratio: float = 0.7  # of the 75th-percentile line width

    # Anchors above this confidence get author/year re-parsed from the full text
    parse_confidence_threshold: float = 0.8

    def __post_init__(self):
        """Validate configuration."""
        if self.skip_leading_pages < 0:
            raise ConfigurationError(
                f"skip_leading_pages must be >= 0, got {self.skip_leading_pages}"
            )
        _require_positive("heading_size_ratio", self.heading_size_ratio)
        _require_positive("end_heading_size_ratio", self.end_heading_size_ratio)
        if self.format_sample_size < 1:
            raise ConfigurationError(
                f"format_sample_size must be >= 1, got {self.format_sample_size}"
            )
        _require_ratio("format_min_share", self.format_min_share)
        _require_positive("gap_break_ratio", self.gap_break_ratio)
        _require_ratio("short_line_ratio", self.short_line_ratio)
        _require_ratio("parse_confidence_threshold", self.parse_confidence_threshold)


@dataclass
class CitationConfig:
    """Inline citation detection and fusion thresholds."""

    format_sample_size: int = 25  # anchors inspected to find the dominant format
    format_damping: float = 0.6  # multiplier for citations of the non-dominant type

    # Superscripts
    superscript_height_ratio: float = 0.55  # of body line height
    superscript_min_yield: int = 10  # superscripts are scanned only below this many citations

    # Native hyperlinks
    native_link_boost: float = 0.2
    native_overlap_tolerance: float = 5.0  # points
    native_anchor_distance: float = 50.0  # |dx| + |dy| to accept a destination anchor
    native_only_confidence: float = 0.85

    # Numeric parsing
    max_range_span: int = 30
    max_citation_index: int = 1000

    # Filters
    author_match_min: float = 0.4
    min_confidence: float = 0.3

    def __post_init__(self):
        """Validate configuration."""
        if self.format_sample_size < 1:
            raise ConfigurationError(
                f"format_sample_size must be >= 1, got {self.format_sample_size}"
            )
        for name in (
            "format_damping",
            "superscript_height_ratio",
            "native_link_boost",
            "native_only_confidence",
            "author_match_min",
            "min_confidence",
        ):
            _require_ratio(name, getattr(self, name))
        if self.superscript_min_yield < 0:
            raise ConfigurationError(
                f"superscript_min_yield must be >= 0, got {self.superscript_min_yield}"
            )
        if self.native_overlap_tolerance < 0:
            raise ConfigurationError(
                f"native_overlap_tolerance must be >= 0, got {self.native_overlap_tolerance}"
            )
        _require_positive("native_anchor_distance", self.native_anchor_distance)
        if self.max_range_span < 1:
            raise ConfigurationError(f"max_range_span must be >= 1, got {self.max_range_span}")
        if self.max_citation_index < 2:
            raise ConfigurationError(
                f"max_citation_index must be >= 2, got {self.max_citation_index}"
            )


@dataclass
class OutlineConfig:
    """Outline synthesis options."""

    use_bookmarks: bool = True  # prefer the document's own bookmark tree
    relative_tier_threshold: float = 0.1  # relative size gap that opens a new heading tier
    max_top_level_jump: int = 5  # reject "7." right after "1." style noise
    short_line_ratio: float = 0.4  # of page width
    larger_font_ratio: float = 1.4  # line height vs. body line height
    smaller_font_ratio: float = 0.92
    title_case_ratio: float = 0.6
    validators: tuple[str, ...] = ("hierarchy", "title_quality")

    def __post_init__(self):
        """Validate configuration."""
        _require_ratio("relative_tier_threshold", self.relative_tier_threshold)
        if self.max_top_level_jump < 1:
            raise ConfigurationError(
                f"max_top_level_jump must be >= 1, got {self.max_top_level_jump}"
            )
        _require_ratio("short_line_ratio", self.short_line_ratio)
        _require_positive("larger_font_ratio", self.larger_font_ratio)
        _require_positive("smaller_font_ratio", self.smaller_font_ratio)
        _require_ratio("title_case_ratio", self.title_case_ratio)

        valid_validators = ("hierarchy", "title_quality", "page_order")
        for name in self.validators:
            if name not in valid_validators:
                raise ConfigurationError(
                    f"validators must be drawn from {valid_validators}, got {name!r}"
                )


@dataclass
class AnalysisConfig:
    """
    Configuration for document analysis.

    All options have sensible defaults. Create a config only
    if you need to customize behavior.

    Example:
        >>> config = AnalysisConfig(
        ...     indexing=IndexingConfig(batch_size=4),
        ...     citations=CitationConfig(min_confidence=0.5),
        ... )
        >>> analyzer = docstruct.analyze("paper.pdf", config)
    """

    layout: LayoutConfig = field(default_factory=LayoutConfig)
    indexing: IndexingConfig = field(default_factory=IndexingConfig)
    references: ReferenceConfig = field(default_factory=ReferenceConfig)
    citations: CitationConfig = field(default_factory=CitationConfig)
    outline: OutlineConfig = field(default_factory=OutlineConfig)

    # Error handling when the document itself cannot be opened
    on_extraction_error: Literal["raise", "warn", "skip"] = "warn"

    # Alternate lexicon file (YAML); None uses the bundled lexicon
    lexicon_path: Path | None = None

    def __post_init__(self):
        """Validate configuration."""
        valid_error_modes = ("raise", "warn", "skip")
        if self.on_extraction_error not in valid_error_modes:
            raise ConfigurationError(
                f"on_extraction_error must be one of {valid_error_modes}, "
                f"got {self.on_extraction_error!r}"
            )
        if self.lexicon_path is not None:
            self.lexicon_path = Path(self.lexicon_path)
