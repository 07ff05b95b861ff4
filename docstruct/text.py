"""
Reading-order page text with a character-to-rectangle map.

Detectors run regexes over ``PageText.text`` and turn match offsets
back into page rectangles with ``rects_for_span``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from docstruct.models import Line, PageLayout, Rect, needs_separator


@dataclass
class PageText:
    """Page text in reading order.

    ``char_rects[i]`` is the box of ``text[i]``; inserted separators map
    to None. ``line_spans[k]`` is the ``(start, end)`` offset range of the
    k-th line in ``lines``.
    """

    page_number: int
    text: str
    char_rects: list[Rect | None]
    lines: list[Line] = field(default_factory=list)
    line_spans: list[tuple[int, int]] = field(default_factory=list)

    @classmethod
    def from_layout(cls, layout: PageLayout, *, join_hyphenated: bool = False) -> PageText:
        """Build the page text; optionally join ``exam-`` + ``ple`` across lines."""
        return cls.from_lines(layout.page_number, layout.lines, join_hyphenated=join_hyphenated)

    @classmethod
    def from_lines(
        cls, page_number: int, lines: list[Line], *, join_hyphenated: bool = False
    ) -> PageText:
        chars: list[str] = []
        rects: list[Rect | None] = []
        spans: list[tuple[int, int]] = []
        kept: list[Line] = []
        joined = False  # previous line ended in a dropped hyphen

        for index, line in enumerate(lines):
            line_chars = _line_chars(line)
            if not line_chars:
                continue
            if chars and not joined:
                chars.append(" ")
                rects.append(None)

            if join_hyphenated and _hyphen_joins(line, lines[index + 1 : index + 2]):
                line_chars = line_chars[:-1]
                joined = True
            else:
                joined = False

            start = len(chars)
            for char, rect in line_chars:
                chars.append(char)
                rects.append(rect)
            spans.append((start, len(chars)))
            kept.append(line)

        return cls(page_number, "".join(chars), rects, kept, spans)

    def rects_for_span(self, start: int, end: int) -> list[Rect]:
        """Merged rectangles covering ``text[start:end]``.

        Character boxes merge left to right and break on a vertical jump
        of more than half a character height or on a backward x jump.
        """
        merged: list[Rect] = []
        last: Rect | None = None
        for rect in self.char_rects[max(0, start) : max(0, end)]:
            if rect is None:
                continue
            if merged and last is not None and not _breaks(last, rect):
                merged[-1] = merged[-1].union(rect)
            else:
                merged.append(rect)
            last = rect
        return merged

    def line_at(self, offset: int) -> Line | None:
        for line, (start, end) in zip(self.lines, self.line_spans):
            if start <= offset < end:
                return line
        return None


def _breaks(prev: Rect, rect: Rect) -> bool:
    if abs(rect.y - prev.y) > 0.5 * max(prev.height, 0.1):
        return True
    return rect.x + 0.01 < prev.x


def _line_chars(line: Line) -> list[tuple[str, Rect | None]]:
    """Characters of ``line.text`` with per-character boxes.

    Mirrors ``Line.text``: runs joined with a separator where visibly
    apart, then surrounding whitespace stripped. A run's width is
    spread evenly over its characters.
    """
    chars: list[tuple[str, Rect | None]] = []
    prev = None
    for run in line.runs:
        if prev is not None and needs_separator(prev, run):
            chars.append((" ", None))
        n = len(run.text)
        step = run.width / n if n else 0.0
        for i, char in enumerate(run.text):
            chars.append((char, Rect(run.x + i * step, run.y, step, run.height)))
        prev = run

    start, end = 0, len(chars)
    while start < end and chars[start][0].isspace():
        start += 1
    while end > start and chars[end - 1][0].isspace():
        end -= 1
    return chars[start:end]


def _hyphen_joins(line: Line, following: list[Line]) -> bool:
    if not following or not line.text.endswith("-") or line.text.endswith("--"):
        return False
    next_text = following[0].text
    return bool(next_text) and next_text[0].islower()
