"""
Column gutter detection and reading-order reconstruction.

A gutter is accepted only when enough lines show a wide gap at the same
x position, the supporting lines cover enough of the page height, the
gutter is away from the page edges, and the resulting columns have
plausible widths. Anything inconclusive falls back to a single column.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from statistics import median

from docstruct.config import LayoutConfig
from docstruct.layout.lines import group_runs_into_lines
from docstruct.models import ColumnBoundary, LayoutSegment, Line, TextRun

logger = logging.getLogger(__name__)

MARGIN_PADDING = 5.0


@dataclass
class _Cluster:
    xs: list[float]
    lines: list[Line]

    @property
    def center(self) -> float:
        return sum(self.xs) / len(self.xs)


def _gutter_candidate(line: Line, config: LayoutConfig) -> float | None:
    """Center x of the line's widest inter-run gap, if it is gutter-like."""
    runs = line.runs
    gaps = []
    for left, right in zip(runs, runs[1:]):
        gap = right.x - left.right
        if gap > 0:
            gaps.append((gap, (left.right + right.x) / 2))
    if not gaps:
        return None

    widest, center = max(gaps)
    median_gap = median(g for g, _ in gaps)
    if len(gaps) > 1 and widest > median_gap * config.gutter_median_ratio:
        return center
    if widest > line.width * config.gutter_line_width_ratio:
        return center
    return None


def detect_gutters(
    lines: list[Line], page_width: float, page_height: float, config: LayoutConfig | None = None
) -> list[float]:
    """Return gutter x positions (left to right); empty for single-column pages."""
    config = config or LayoutConfig()
    if len(lines) < config.min_lines_for_columns or page_width <= 0 or page_height <= 0:
        return []

    eligible = [line for line in lines if len(line.runs) >= 2]
    if not eligible:
        return []

    candidates: list[tuple[float, Line]] = []
    for line in eligible:
        x = _gutter_candidate(line, config)
        if x is not None:
            candidates.append((x, line))

    min_support = max(2, math.ceil(len(eligible) * config.gutter_line_threshold))
    if len(candidates) < min_support:
        return []

    # Cluster against the running average
    tolerance = page_width * config.cluster_tolerance_ratio
    clusters: list[_Cluster] = []
    for x, line in sorted(candidates, key=lambda c: c[0]):
        if clusters and abs(x - clusters[-1].center) <= tolerance:
            clusters[-1].xs.append(x)
            clusters[-1].lines.append(line)
        else:
            clusters.append(_Cluster([x], [line]))

    gutters = []
    edge = page_width * config.gutter_edge_margin_ratio
    for cluster in clusters:
        if len(cluster.xs) < min_support:
            continue
        top = min(line.y for line in cluster.lines)
        bottom = max(line.bottom for line in cluster.lines)
        if bottom - top < page_height * config.min_vertical_coverage:
            continue
        if cluster.center < edge or cluster.center > page_width - edge:
            continue
        gutters.append(cluster.center)

    if not gutters:
        return []

    if not _plausible_columns(gutters, lines, page_width, config):
        logger.debug("Rejected gutter set %s: implausible column widths", gutters)
        return []
    return gutters


def _plausible_columns(
    gutters: list[float], lines: list[Line], page_width: float, config: LayoutConfig
) -> bool:
    if len(gutters) + 1 > config.max_columns:
        return False
    margin_left, margin_right = compute_margins(lines, page_width)
    content = page_width - margin_left - margin_right
    if content <= 0:
        return False
    for column in column_boundaries(gutters, margin_left, margin_right, page_width):
        share = column.width / content
        if share < config.min_column_width_ratio or share > config.max_column_width_ratio:
            return False
    return True


def compute_margins(lines: list[Line], page_width: float) -> tuple[float, float]:
    """Left and right margins estimated from the text extent."""
    if not lines:
        return 0.0, 0.0
    left = max(0.0, min(line.x for line in lines) - MARGIN_PADDING)
    right = max(0.0, page_width - max(line.right for line in lines) - MARGIN_PADDING)
    return left, right


def column_boundaries(
    gutters: list[float], margin_left: float, margin_right: float, page_width: float
) -> list[ColumnBoundary]:
    """Columns spanning the content area, split at each gutter."""
    edges = [margin_left, *gutters, page_width - margin_right]
    return [ColumnBoundary(left, right) for left, right in zip(edges, edges[1:])]


def assign_column(x: float, columns: list[ColumnBoundary]) -> int:
    """Index of the column containing ``x``, else the one with the nearest center."""
    for i, column in enumerate(columns):
        if column.left <= x < column.right:
            return i
    return min(range(len(columns)), key=lambda i: abs(columns[i].center - x))


# ============================================================
# Reading order
# ============================================================


def _is_full_width(
    line: Line, gutters: list[float], content_width: float, config: LayoutConfig
) -> bool:
    for run in line.runs:
        if run.width >= content_width * config.full_width_threshold:
            return True
        if any(run.x < g - 1.0 and run.right > g + 1.0 for g in gutters):
            return True
    return False


def order_lines(
    lines: list[Line],
    columns: list[ColumnBoundary],
    gutters: list[float],
    config: LayoutConfig | None = None,
) -> tuple[list[Line], list[LayoutSegment]]:
    """Reconstruct reading order from page-wide lines.

    The page is cut into horizontal bands, each either ``full-width``
    or ``columns``. A band ends when the line kind changes or the
    vertical gap exceeds ``band_gap_ratio`` average run heights. Column
    bands are regrouped per column and read left to right; bands are
    read top to bottom.
    """
    config = config or LayoutConfig()
    if not lines:
        return [], []

    by_position = sorted(lines, key=lambda line: (line.y, line.x))
    if not gutters or len(columns) < 2:
        for line in by_position:
            line.column = 0
        mark_line_starts(by_position)
        segment = LayoutSegment(
            "full-width",
            by_position[0].y,
            max(line.bottom for line in by_position),
            list(by_position),
        )
        return by_position, [segment]

    content_width = columns[-1].right - columns[0].left
    all_runs = [run for line in by_position for run in line.runs]
    avg_height = sum(r.height for r in all_runs) / len(all_runs)
    band_gap = avg_height * config.band_gap_ratio

    bands: list[tuple[str, list[Line]]] = []
    prev_bottom: float | None = None
    for line in by_position:
        kind = "full-width" if _is_full_width(line, gutters, content_width, config) else "columns"
        gap = line.y - prev_bottom if prev_bottom is not None else 0.0
        if bands and bands[-1][0] == kind and gap <= band_gap:
            bands[-1][1].append(line)
        else:
            bands.append((kind, [line]))
        prev_bottom = line.bottom if prev_bottom is None else max(prev_bottom, line.bottom)

    ordered: list[Line] = []
    segments: list[LayoutSegment] = []
    for kind, band_lines in bands:
        if kind == "full-width":
            for line in band_lines:
                line.column = 0
            band_ordered = band_lines
        else:
            band_ordered = _split_band(band_lines, columns, config)
        segments.append(
            LayoutSegment(
                kind,  # type: ignore[arg-type]
                min(line.y for line in band_lines),
                max(line.bottom for line in band_lines),
                band_ordered,
            )
        )
        ordered.extend(band_ordered)

    mark_line_starts(ordered)
    return ordered, segments


def _split_band(
    band_lines: list[Line], columns: list[ColumnBoundary], config: LayoutConfig
) -> list[Line]:
    page_number = band_lines[0].page_number
    per_column: list[list[TextRun]] = [[] for _ in columns]
    for line in band_lines:
        for run in line.runs:
            per_column[assign_column(run.center_x, columns)].append(run)

    ordered: list[Line] = []
    for index, runs in enumerate(per_column):
        for line in group_runs_into_lines(runs, page_number, config):
            line.column = index
            ordered.append(line)
    return ordered


def mark_line_starts(lines: list[Line]) -> None:
    """Flag lines that begin at their column's text edge (not indented)."""
    lefts: dict[int, float] = {}
    for line in lines:
        lefts[line.column] = min(lefts.get(line.column, line.x), line.x)
    for line in lines:
        line.is_at_line_start = line.x - lefts[line.column] < max(
            MARGIN_PADDING, line.font_size * 0.6
        )
