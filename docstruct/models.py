"""
Core data models for docstruct.

Coordinates follow PyMuPDF: top-left origin, y grows downward, units
are PDF points. Page numbers are 1-based; ``page_index`` fields are
0-based.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from collections.abc import Iterator


# ============================================================
# Enums
# ============================================================


class FontStyle(IntEnum):
    """Typographic style of a run or line."""

    REGULAR = 0
    BOLD = 1
    ITALIC = 2
    BOLD_ITALIC = 3

    @classmethod
    def from_flags(cls, bold: bool, italic: bool) -> FontStyle:
        if bold and italic:
            return cls.BOLD_ITALIC
        if bold:
            return cls.BOLD
        if italic:
            return cls.ITALIC
        return cls.REGULAR

    @property
    def is_bold(self) -> bool:
        return self in (FontStyle.BOLD, FontStyle.BOLD_ITALIC)

    @property
    def is_italic(self) -> bool:
        return self in (FontStyle.ITALIC, FontStyle.BOLD_ITALIC)


class CitationType(str, Enum):
    """How an inline citation was written."""

    NUMERIC = "numeric"
    AUTHOR_YEAR = "author-year"
    SUPERSCRIPT = "superscript"


class CitationFlags(IntFlag):
    """Bit flags describing how a citation (or cross-reference) was detected."""

    NONE = 0
    RANGE_NOTATION = 1
    MULTI_REF = 2
    MULTI_YEAR = 4
    NATIVE_CONFIRMED = 8
    DEST_CONFIRMED = 16


CrossReferenceType = Literal[
    "figure", "table", "section", "equation", "algorithm", "theorem", "appendix"
]


# ============================================================
# Geometry
# ============================================================


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle (top-left origin)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    def overlaps(self, other: Rect, tolerance: float = 0.0) -> bool:
        """Whether two rectangles intersect, growing ``other`` by ``tolerance``."""
        overlap_x = self.x < other.right + tolerance and self.right > other.x - tolerance
        overlap_y = self.y < other.bottom + tolerance and self.bottom > other.y - tolerance
        return overlap_x and overlap_y

    def union(self, other: Rect) -> Rect:
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        x1 = max(self.right, other.right)
        y1 = max(self.bottom, other.bottom)
        return Rect(x0, y0, x1 - x0, y1 - y0)


@dataclass(frozen=True)
class TargetLocation:
    """A navigation target: 0-based page index plus a point on that page."""

    page_index: int
    x: float
    y: float


# ============================================================
# Layout
# ============================================================


@dataclass(frozen=True)
class TextRun:
    """A positioned piece of text with font metadata.

    Produced per page by the text-extraction collaborator (one PyMuPDF
    span per run when read through PDFReader).
    """

    text: str
    x: float
    y: float  # top edge
    width: float
    height: float
    font_name: str | None = None
    font_size: float | None = None
    style: FontStyle = FontStyle.REGULAR
    is_superscript: bool = False  # engine-reported superscript flag

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def size(self) -> float:
        """Font size, falling back to the box height when the engine gave none."""
        return self.font_size if self.font_size else self.height

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)


@dataclass
class Line:
    """Runs sharing a vertical band, ordered left to right.

    Derived attributes are computed once by ``from_runs``; a page
    re-index builds fresh Line objects.
    """

    runs: list[TextRun]
    page_number: int
    text: str
    x: float
    y: float
    width: float
    height: float
    font_size: float  # dominant (max) run size
    line_height: float  # median run height
    font_style: FontStyle
    is_at_line_start: bool = True  # starts at its column's left edge
    is_common_font: bool = False  # matches the document body font
    column: int = 0

    @classmethod
    def from_runs(cls, runs: list[TextRun], page_number: int) -> Line:
        """Build a line from runs (re-sorted by x)."""
        ordered = sorted(runs, key=lambda r: r.x)
        x0 = min(r.x for r in ordered)
        y0 = min(r.y for r in ordered)
        x1 = max(r.right for r in ordered)
        y1 = max(r.bottom for r in ordered)
        heights = sorted(r.height for r in ordered)

        return cls(
            runs=ordered,
            page_number=page_number,
            text=_join_runs(ordered),
            x=x0,
            y=y0,
            width=x1 - x0,
            height=y1 - y0,
            font_size=max(r.size for r in ordered),
            line_height=heights[len(heights) // 2],
            font_style=_dominant_style(ordered),
        )

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    @property
    def is_bold(self) -> bool:
        return self.font_style.is_bold

    @property
    def is_all_caps(self) -> bool:
        """All cased characters are upper case (and there is at least one)."""
        return self.text.upper() == self.text and self.text.lower() != self.text


def needs_separator(prev: TextRun, run: TextRun) -> bool:
    """Whether a space belongs between two adjacent runs of a line."""
    if prev.text[-1:].isspace() or run.text[:1].isspace():
        return False
    return run.x - prev.right > max(1.0, prev.height * 0.15)


def _join_runs(runs: list[TextRun]) -> str:
    """Concatenate run texts, inserting a space where runs are visibly apart."""
    parts: list[str] = []
    prev: TextRun | None = None
    for run in runs:
        if prev is not None and needs_separator(prev, run):
            parts.append(" ")
        parts.append(run.text)
        prev = run
    return "".join(parts).strip()


def _dominant_style(runs: list[TextRun]) -> FontStyle:
    """Style covering the majority of the line's characters."""
    total = sum(len(r.text.strip()) for r in runs) or 1
    bold = sum(len(r.text.strip()) for r in runs if r.style.is_bold)
    italic = sum(len(r.text.strip()) for r in runs if r.style.is_italic)
    return FontStyle.from_flags(bold * 2 >= total and bold > 0, italic * 2 >= total and italic > 0)


@dataclass(frozen=True)
class ColumnBoundary:
    """Horizontal extent of one text column."""

    left: float
    right: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def center(self) -> float:
        return (self.left + self.right) / 2


@dataclass
class LayoutSegment:
    """A horizontal band of the page, either full-width or multi-column."""

    kind: Literal["full-width", "columns"]
    y_start: float
    y_end: float
    lines: list[Line] = field(default_factory=list)  # reading order within the band


@dataclass
class PageLayout:
    """Indexed layout of a single page."""

    page_number: int
    width: float
    height: float
    lines: list[Line] = field(default_factory=list)  # reading order
    columns: list[ColumnBoundary] = field(default_factory=list)
    gutters: list[float] = field(default_factory=list)
    segments: list[LayoutSegment] = field(default_factory=list)
    margin_left: float = 0.0
    margin_right: float = 0.0
    margin_top: float = 0.0
    margin_bottom: float = 0.0

    @classmethod
    def empty(cls, page_number: int, width: float = 0.0, height: float = 0.0) -> PageLayout:
        return cls(page_number=page_number, width=width, height=height)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def is_multi_column(self) -> bool:
        return len(self.columns) > 1

    @property
    def text(self) -> str:
        """Reading-order text, one space between lines."""
        return " ".join(line.text for line in self.lines if line.text)


@dataclass(frozen=True)
class BodyFontStats:
    """Document-wide body text typography."""

    font_size: float = 10.0
    font_style: FontStyle = FontStyle.REGULAR
    line_height: float = 12.0
    sample_count: int = 0  # lines the statistics were computed from


# ============================================================
# References
# ============================================================


@dataclass(frozen=True)
class AnchorPageRange:
    """Rectangles an anchor occupies on one page."""

    page_number: int
    rects: tuple[Rect, ...]


@dataclass(frozen=True)
class ReferenceAnchor:
    """A located, segmented bibliography entry."""

    id: str
    index: int | None  # printed number; None for unnumbered formats
    ordinal: int  # 1-based position in the bibliography
    page_number: int
    start_x: float
    start_y: float
    end_page: int
    end_x: float
    end_y: float
    text: str
    confidence: float
    format_hint: str
    first_author: str | None = None  # surname as printed
    authors: tuple[str, ...] = ()  # lower-cased surnames, in order
    year: str | None = None
    page_ranges: tuple[AnchorPageRange, ...] = ()

    @property
    def location(self) -> TargetLocation:
        return TargetLocation(page_index=self.page_number - 1, x=self.start_x, y=self.start_y)


@dataclass
class ReferenceSection:
    """Boundaries and content of the bibliography."""

    heading: str
    start_page: int
    start_line_index: int
    start_y: float
    end_page: int
    end_line_index: int
    end_y: float
    lines: list[Line] = field(default_factory=list)
    confidence: float = 0.0
    _line_ids: set[int] | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def page_numbers(self) -> range:
        return range(self.start_page, self.end_page + 1)

    def contains(self, page_number: int, y: float, tolerance: float = 0.0) -> bool:
        """Whether a point lies between the start and end boundaries.

        Purely positional; on multi-column pages prefer ``contains_line``.
        ``tolerance`` widens both boundaries.
        """
        if page_number < self.start_page or page_number > self.end_page:
            return False
        if page_number == self.start_page and y < self.start_y - tolerance:
            return False
        if page_number == self.end_page and y > self.end_y + tolerance:
            return False
        return True

    def contains_line(self, line: Line) -> bool:
        """Whether ``line`` is one of the section's own lines."""
        if self._line_ids is None:
            self._line_ids = {id(member) for member in self.lines}
        return id(line) in self._line_ids


# ============================================================
# Citations & cross-references
# ============================================================


@dataclass(frozen=True)
class RefKey:
    """Author/year key parsed from an author-year citation."""

    author: str
    year: str
    second_author: str | None = None
    is_range: bool = False


@dataclass(frozen=True)
class CitationTarget:
    """One bibliography entry a citation points to."""

    anchor_id: str
    ref_index: int | None
    ref_key: RefKey | None
    location: TargetLocation | None


@dataclass
class Citation:
    """An inline citation matched to one or more bibliography anchors."""

    type: CitationType
    text: str
    page_number: int
    rects: list[Rect]
    confidence: float
    ref_indices: list[int] = field(default_factory=list)  # printed numbers (numeric types)
    anchor_ids: list[str] = field(default_factory=list)  # validated anchors, all types
    ref_ranges: list[tuple[int, int]] = field(default_factory=list)
    ref_keys: list[RefKey] = field(default_factory=list)
    flags: CitationFlags = CitationFlags.NONE
    target_location: TargetLocation | None = None
    targets: list[CitationTarget] = field(default_factory=list)

    def has_flag(self, flag: CitationFlags) -> bool:
        return bool(self.flags & flag)


@dataclass(frozen=True)
class CrossReferenceTarget:
    """A definition site: a caption, numbered heading, theorem head, etc."""

    type: str
    target_id: str
    label: str  # e.g. "figure", "lemma"
    page_number: int
    x: float
    y: float
    text: str

    @property
    def location(self) -> TargetLocation:
        return TargetLocation(page_index=self.page_number - 1, x=self.x, y=self.y)


@dataclass
class CrossReference:
    """An in-text reference to a figure, table, section, equation, etc."""

    type: str
    text: str
    target_id: str
    label: str
    page_number: int
    rects: list[Rect]
    confidence: float
    target_location: TargetLocation | None = None
    flags: CitationFlags = CitationFlags.NONE

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.type, self.label, self.target_id)

    @property
    def has_native(self) -> bool:
        return bool(self.flags & CitationFlags.NATIVE_CONFIRMED)


# ============================================================
# Outline, search, metadata
# ============================================================


@dataclass
class OutlineNode:
    """A node of the document outline."""

    id: str
    title: str
    page_index: int
    left: float
    top: float
    level: int = 1
    children: list[OutlineNode] = field(default_factory=list)

    def walk(self) -> Iterator[OutlineNode]:
        """Depth-first iteration over this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class SearchMatch:
    """A case-insensitive substring hit on one page."""

    page_number: int
    start: int  # offset into the page text
    end: int
    text: str
    rects: tuple[Rect, ...]


@dataclass
class DocumentMetadata:
    """Document-level facts detected from the first pages."""

    title: str | None = None
    abstract_location: TargetLocation | None = None
    page_count: int = 0
    raw: dict[str, Any] = field(default_factory=dict)  # engine metadata
