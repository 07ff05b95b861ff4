"""
Line grouping and body-font statistics.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from statistics import median

from docstruct.config import LayoutConfig
from docstruct.models import BodyFontStats, FontStyle, Line, TextRun

logger = logging.getLogger(__name__)


def group_runs_into_lines(
    runs: Iterable[TextRun], page_number: int, config: LayoutConfig | None = None
) -> list[Line]:
    """Group runs into lines by vertical proximity.

    Runs are visited in ``(y, x)`` order. A run joins the current line
    when its vertical centre is within ``max(min_threshold, font_size *
    ratio)`` of the centre of the line's first run, using the larger of the
    two font sizes; otherwise it opens a new line. Centres rather than top
    edges keep superscripts on their line.
    """
    config = config or LayoutConfig()
    usable = [r for r in runs if _is_usable(r, config)]
    if not usable:
        return []

    usable.sort(key=lambda r: (r.y, r.x))

    groups: list[list[TextRun]] = [[usable[0]]]
    for run in usable[1:]:
        first = groups[-1][0]
        threshold = max(
            config.line_merge_min_threshold,
            max(first.size, run.size) * config.line_merge_size_ratio,
        )
        if abs(_center_y(run) - _center_y(first)) <= threshold:
            groups[-1].append(run)
        else:
            groups.append([run])

    return [Line.from_runs(group, page_number) for group in groups]


def _center_y(run: TextRun) -> float:
    return run.y + run.height / 2


def _is_usable(run: TextRun, config: LayoutConfig) -> bool:
    text = run.text.strip()
    if not text:
        return False
    if run.width < 0 or run.height <= 0:
        return False
    return not any(text.startswith(prefix) for prefix in config.skip_prefixes)


def compute_body_stats(lines: Iterable[Line]) -> BodyFontStats:
    """Most frequent size (0.1pt buckets) and style, median line height.

    Each line is weighted by its character count so headings and page
    furniture do not outvote running text.
    """
    sizes: Counter[float] = Counter()
    styles: Counter[FontStyle] = Counter()
    heights: list[float] = []
    count = 0

    for line in lines:
        weight = len(line.text)
        if weight == 0:
            continue
        sizes[round(line.font_size, 1)] += weight
        styles[line.font_style] += weight
        heights.append(line.line_height)
        count += 1

    if not count:
        return BodyFontStats()

    return BodyFontStats(
        font_size=sizes.most_common(1)[0][0],
        font_style=styles.most_common(1)[0][0],
        line_height=median(heights),
        sample_count=count,
    )


def mark_common_font(lines: Iterable[Line], stats: BodyFontStats, tolerance: float) -> None:
    """Flag lines whose size and style match the body font."""
    for line in lines:
        line.is_common_font = (
            abs(line.font_size - stats.font_size) < tolerance
            and line.font_style == stats.font_style
        )
