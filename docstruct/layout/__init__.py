"""
Text layout indexing.

Groups positioned text runs into lines, detects column gutters and
rebuilds per-page reading order.
"""

from docstruct.layout.columns import (
    assign_column,
    column_boundaries,
    compute_margins,
    detect_gutters,
    order_lines,
)
from docstruct.layout.indexer import ProgressCallback, TextLayoutIndexer
from docstruct.layout.lines import compute_body_stats, group_runs_into_lines, mark_common_font

__all__ = [
    # Indexer
    "TextLayoutIndexer",
    "ProgressCallback",
    # Lines
    "group_runs_into_lines",
    "compute_body_stats",
    "mark_common_font",
    # Columns
    "detect_gutters",
    "compute_margins",
    "column_boundaries",
    "assign_column",
    "order_lines",
]
