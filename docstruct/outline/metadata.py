"""
Document title and abstract detection from the first pages.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from docstruct.context import DocumentContext
from docstruct.layout.lines import compute_body_stats
from docstruct.lexicon import Lexicon
from docstruct.models import DocumentMetadata, FontStyle, Line, PageLayout, TargetLocation

logger = logging.getLogger(__name__)

SCAN_PAGES = 3
TITLE_AREA_RATIO = 0.4  # title lines sit in the top 40% of page 1
TITLE_SIZE_RATIO = 1.2
SAME_SIZE_TOLERANCE = 0.5
SAME_ROW_TOLERANCE = 5.0
ABSTRACT_SIZE_RATIO = 1.05

_NUMBER_ONLY = re.compile(r"^\d+\.?\s*$")
_TITLE_LABEL = re.compile(r"^title:\s*", re.IGNORECASE)
_WORDISH = re.compile(r"[^\W\d_]{3,}")
_ABSTRACT_TAIL = re.compile(r"^\s*(?:[:.]\s*$|[-–—]|$)")


def _scan_lines(layouts: Sequence[PageLayout]) -> list[Line]:
    return [
        line
        for layout in layouts[:SCAN_PAGES]
        for line in layout.lines
        if len(line.text.strip()) >= 2
    ]


def clean_title(text: str | None) -> str | None:
    if not text:
        return None
    cleaned = _TITLE_LABEL.sub("", text.strip().rstrip("*").strip()).strip()
    if len(cleaned) < 5 or not _WORDISH.search(cleaned):
        return None
    return cleaned


def detect_title(
    layouts: Sequence[PageLayout], lexicon: Lexicon, body_size: float
) -> str | None:
    """The largest-font block near the top of page 1, joined across lines."""
    if not layouts or layouts[0].page_number != 1:
        return None
    first = layouts[0]
    area = first.height * TITLE_AREA_RATIO if first.height else float("inf")
    candidates = [line for line in first.lines if line.y < area and line.text.strip()]
    if not candidates:
        return None

    large = [line for line in candidates if line.font_size >= body_size * TITLE_SIZE_RATIO]
    if not large:
        biggest = max(candidates, key=lambda line: line.font_size)
        return clean_title(biggest.text) if biggest.font_size > body_size else None

    large.sort(key=lambda line: (round(line.y / SAME_ROW_TOLERANCE), -line.font_size))
    max_size = max(line.font_size for line in large)

    title_lines: list[Line] = []
    for line in large:
        if abs(line.font_size - max_size) < SAME_SIZE_TOLERANCE:
            text = line.text.strip()
            if _NUMBER_ONLY.match(text) or lexicon.front_matter_skip.match(text):
                continue
            title_lines.append(line)
        elif title_lines:
            break

    title = ""
    for line in sorted(title_lines, key=lambda line: line.y):
        text = line.text.strip()
        if not title:
            title = text
        elif title.endswith("-"):
            title = title[:-1] + text
        else:
            title = f"{title} {text}"
    return clean_title(title)


def detect_abstract(
    layouts: Sequence[PageLayout], lexicon: Lexicon, body_size: float
) -> TargetLocation | None:
    """Location of the abstract heading (``Abstract``, ``Abstract—``, ``摘要``)."""
    for line in _scan_lines(layouts):
        stripped = lexicon.strip_section_number(line.text)
        match = lexicon.abstract_heading.match(stripped)
        if not match or not _ABSTRACT_TAIL.match(stripped[match.end() :]):
            continue
        bare = stripped.lower() == match.group(0).lower()
        distinguished = any(
            run.font_size > body_size * ABSTRACT_SIZE_RATIO or run.style != FontStyle.REGULAR
            for run in line.runs
        )
        if bare or distinguished:
            return TargetLocation(page_index=line.page_number - 1, x=line.x, y=line.y)
    return None


def detect_document_metadata(
    layouts: Sequence[PageLayout], lexicon: Lexicon, context: DocumentContext | None = None
) -> DocumentMetadata:
    """Title, abstract location and engine metadata.

    The detected title wins over the engine's ``title`` entry, which is
    often a file name or empty.
    """
    raw = dict(context.metadata) if context is not None else {}
    page_count = context.page_count if context is not None else len(layouts)

    lines = _scan_lines(layouts)
    if not lines:
        return DocumentMetadata(
            title=clean_title(raw.get("title")), page_count=page_count, raw=raw
        )

    body_size = compute_body_stats(lines).font_size
    title = detect_title(layouts, lexicon, body_size) or clean_title(raw.get("title"))
    abstract = detect_abstract(layouts, lexicon, body_size)
    logger.debug("Detected title %r, abstract at %s", title, abstract)
    return DocumentMetadata(
        title=title, abstract_location=abstract, page_count=page_count, raw=raw
    )
