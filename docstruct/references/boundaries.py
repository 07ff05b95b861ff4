"""
Structural boundary detection for unlabeled bibliographies.

Decides, for each consecutive pair of bibliography lines, whether the
second line opens a new entry. Signals, strongest first:

1. Vertical gap: a line pitch above ``gap_break_ratio`` times the
   document's baseline pitch always opens an entry.
2. Layout discontinuity (page change or a column wrap, seen as ``y``
   moving upwards): a short previous line plus a return to the column's
   left edge opens an entry; a full previous line plus an indented line
   continues it; anything else is ambiguous.
3. Indentation relative to the first line of the current entry, when the
   list uses hanging indentation.
4. Lexical fallback for ambiguous cases: a leading surname or bracketed
   number, not a continuation word.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from statistics import median

from docstruct.config import ReferenceConfig
from docstruct.lexicon import Lexicon
from docstruct.models import Line

logger = logging.getLogger(__name__)

HANGING_SHARE = 0.15  # share of indented lines that marks a hanging-indent list


class BoundaryReason(str, Enum):
    """Why an entry was opened."""

    FIRST = "first"
    GAP = "gap"
    DISCONTINUITY = "discontinuity"
    INDENT = "indent"
    LEXICAL = "lexical"


@dataclass
class EntryDraft:
    """Lines of one bibliography entry before it becomes an anchor."""

    lines: list[Line]
    reason: BoundaryReason
    index: int | None = None  # printed number, numbered formats only
    notes: list[str] = field(default_factory=list)


def baseline_line_pitch(lines: Iterable[Line]) -> float:
    """Median top-to-top distance between consecutive lines of the same column."""
    pitches = []
    prev: Line | None = None
    for line in lines:
        if (
            prev is not None
            and prev.page_number == line.page_number
            and prev.column == line.column
            and line.y > prev.y
        ):
            pitches.append(line.y - prev.y)
        prev = line
    return median(pitches) if pitches else 0.0


def _percentile(values: Sequence[float], q: float) -> float:
    ordered = sorted(values)
    if not ordered:
        return 0.0
    return ordered[min(len(ordered) - 1, int(len(ordered) * q))]


class StructuralBoundaryDetector:
    """Segments bibliography lines into entries from geometry alone."""

    def __init__(self, lexicon: Lexicon, config: ReferenceConfig | None = None):
        self.lexicon = lexicon
        self.config = config or ReferenceConfig()

    def segment(self, lines: Sequence[Line], baseline_pitch: float) -> list[EntryDraft]:
        if not lines:
            return []

        column_left = self._column_lefts(lines)
        p75_width = _percentile([line.width for line in lines], 0.75)
        hanging = self._uses_hanging_indent(lines, column_left)

        def rel_x(line: Line) -> float:
            return line.x - column_left[(line.page_number, line.column)]

        drafts = [EntryDraft([lines[0]], BoundaryReason.FIRST)]
        anchor_rel = rel_x(lines[0])
        prev = lines[0]

        for line in lines[1:]:
            tolerance = max(line.line_height, 1.0) / 2
            reason = self._boundary(
                prev, line, rel_x(line), anchor_rel, tolerance, baseline_pitch, p75_width, hanging
            )
            if reason is None:
                drafts[-1].lines.append(line)
            else:
                drafts.append(EntryDraft([line], reason))
                anchor_rel = rel_x(line)
            prev = line

        logger.debug(
            "Structural segmentation: %d lines -> %d entries (hanging=%s, pitch=%.1f)",
            len(lines),
            len(drafts),
            hanging,
            baseline_pitch,
        )
        return drafts

    def _boundary(
        self,
        prev: Line,
        line: Line,
        line_rel: float,
        anchor_rel: float,
        tolerance: float,
        baseline_pitch: float,
        p75_width: float,
        hanging: bool,
    ) -> BoundaryReason | None:
        prev_short = prev.width < p75_width * self.config.short_line_ratio
        at_margin = line_rel <= tolerance

        discontinuity = line.page_number != prev.page_number or line.y < prev.y
        if discontinuity:
            if prev_short and at_margin:
                return BoundaryReason.DISCONTINUITY
            if not prev_short and not at_margin:
                return None
            return BoundaryReason.LEXICAL if self.looks_like_entry_start(line.text) else None

        pitch = line.y - prev.y
        if baseline_pitch > 0 and pitch > baseline_pitch * self.config.gap_break_ratio:
            return BoundaryReason.GAP

        if hanging:
            # Continuations sit right of the entry's first line
            if line_rel - anchor_rel > tolerance:
                return None
            return BoundaryReason.INDENT

        if prev_short and self.looks_like_entry_start(line.text):
            return BoundaryReason.LEXICAL
        return None

    def looks_like_entry_start(self, text: str) -> bool:
        text = text.lstrip()
        if not text:
            return False
        first_word = text.split()[0]
        if self.lexicon.is_continuation_word(first_word):
            return False
        return bool(self.lexicon.entry_start.match(text))

    def _column_lefts(self, lines: Sequence[Line]) -> dict[tuple[int, int], float]:
        lefts: dict[tuple[int, int], float] = {}
        for line in lines:
            key = (line.page_number, line.column)
            lefts[key] = min(lefts.get(key, line.x), line.x)
        return lefts

    def _uses_hanging_indent(
        self, lines: Sequence[Line], column_left: dict[tuple[int, int], float]
    ) -> bool:
        indented = sum(
            1
            for line in lines
            if line.x - column_left[(line.page_number, line.column)]
            > max(line.line_height, 1.0) / 2
        )
        return indented >= max(2, len(lines) * HANGING_SHARE)
