"""
Page-batched text layout indexing.

Pages are indexed in batches on a thread pool; each page writes only its
own slot, so batches share no mutable state. Progress is reported and
cancellation checked between batches.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor

from docstruct.config import IndexingConfig, LayoutConfig
from docstruct.context import DocumentContext
from docstruct.layout.columns import column_boundaries, compute_margins, detect_gutters, order_lines
from docstruct.layout.lines import compute_body_stats, group_runs_into_lines, mark_common_font
from docstruct.models import BodyFontStats, Line, PageLayout

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class TextLayoutIndexer:
    """Builds and caches one PageLayout per page.

    Usage:
        indexer = TextLayoutIndexer(context)
        indexer.build(lambda done, total: print(f"{done}/{total}"))
        for line in indexer.get_layout(1).lines:
            print(line.text)
    """

    def __init__(
        self,
        context: DocumentContext,
        *,
        layout_config: LayoutConfig | None = None,
        indexing_config: IndexingConfig | None = None,
    ):
        self.context = context
        self.layout_config = layout_config or LayoutConfig()
        self.indexing_config = indexing_config or IndexingConfig()

        self._slots: list[PageLayout | None] = [None] * context.page_count
        self._body_stats: BodyFontStats | None = None
        self._lock = threading.RLock()
        self._is_building = False
        self._is_built = False
        self._closed = False

    # --------------------------------------------------------
    # State
    # --------------------------------------------------------

    @property
    def is_built(self) -> bool:
        return self._is_built

    @property
    def is_building(self) -> bool:
        return self._is_building

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def indexed_count(self) -> int:
        return sum(1 for slot in self._slots if slot is not None)

    def is_indexed(self, page_number: int) -> bool:
        return self.context.has_page(page_number) and self._slots[page_number - 1] is not None

    # --------------------------------------------------------
    # Single page
    # --------------------------------------------------------

    def index_page(self, page_number: int) -> PageLayout:
        """Index one page without caching it. Never raises."""
        size = self.context.page_size(page_number) or (0.0, 0.0)
        try:
            return self._index_page(page_number)
        except Exception as e:
            logger.warning("Layout indexing failed on page %d: %s", page_number, e)
            return PageLayout.empty(page_number, *size)

    def _index_page(self, page_number: int) -> PageLayout:
        page = self.context.page(page_number)
        if page is None:
            return PageLayout.empty(page_number)
        if page.extraction_failed:
            logger.warning("No text available for page %d; using an empty layout", page_number)
            return PageLayout.empty(page_number, page.width, page.height)

        raw_lines = group_runs_into_lines(page.runs, page_number, self.layout_config)
        if not raw_lines:
            logger.debug("Page %d has no text runs", page_number)
            return PageLayout.empty(page_number, page.width, page.height)

        gutters = detect_gutters(raw_lines, page.width, page.height, self.layout_config)
        margin_left, margin_right = compute_margins(raw_lines, page.width)
        columns = column_boundaries(gutters, margin_left, margin_right, page.width)
        lines, segments = order_lines(raw_lines, columns, gutters, self.layout_config)

        top = min(line.y for line in lines)
        bottom = max(line.bottom for line in lines)
        logger.debug(
            "Page %d: %d lines, %d gutter(s), %d segment(s)",
            page_number,
            len(lines),
            len(gutters),
            len(segments),
        )
        return PageLayout(
            page_number=page_number,
            width=page.width,
            height=page.height,
            lines=lines,
            columns=columns,
            gutters=gutters,
            segments=segments,
            margin_left=margin_left,
            margin_right=margin_right,
            margin_top=max(0.0, top),
            margin_bottom=max(0.0, page.height - bottom),
        )

    # --------------------------------------------------------
    # Whole document
    # --------------------------------------------------------

    def build(self, progress_callback: ProgressCallback | None = None) -> None:
        """Index every page. A build already running or finished is a no-op."""
        with self._lock:
            if self._is_building or self._is_built or self._closed:
                return
            self._is_building = True

        try:
            total = self.context.page_count
            pending = [n for n in self.context.page_numbers if not self.is_indexed(n)]
            batch_size = self.indexing_config.batch_size
            workers = self.indexing_config.max_workers

            with ThreadPoolExecutor(max_workers=workers) as pool:
                for start in range(0, len(pending), batch_size):
                    if self._closed:
                        logger.info("Indexing cancelled after %d pages", self.indexed_count)
                        return
                    batch = pending[start : start + batch_size]
                    layouts = list(pool.map(self.index_page, batch))
                    with self._lock:
                        if self._closed:
                            return
                        for page_number, layout in zip(batch, layouts):
                            self._slots[page_number - 1] = layout
                    if progress_callback is not None:
                        self._report(progress_callback, self.indexed_count, total)

            with self._lock:
                if self._closed:
                    return
                self._finalize()
                self._is_built = True
            logger.info(
                "Indexed %d pages (body font %.1fpt)", total, self.body_stats.font_size
            )
        finally:
            self._is_building = False

    def _report(self, callback: ProgressCallback, done: int, total: int) -> None:
        try:
            callback(done, total)
        except Exception as e:
            logger.warning("Progress callback raised: %s", e)

    def _finalize(self) -> None:
        """Recompute body statistics and refresh the common-font flags."""
        self._body_stats = compute_body_stats(self.iter_lines())
        mark_common_font(
            self.iter_lines(), self._body_stats, self.layout_config.common_font_tolerance
        )

    # --------------------------------------------------------
    # On-demand access
    # --------------------------------------------------------

    def ensure_page_indexed(self, page_number: int) -> PageLayout | None:
        """Index a page if needed and return its layout; None when out of range."""
        if not self.context.has_page(page_number) or self._closed:
            return None
        cached = self._slots[page_number - 1]
        if cached is not None:
            return cached

        layout = self.index_page(page_number)
        with self._lock:
            existing = self._slots[page_number - 1]
            if existing is not None:
                return existing
            self._slots[page_number - 1] = layout
            self._finalize()
        return layout

    def ensure_pages_indexed(self, page_numbers: Iterable[int]) -> list[PageLayout]:
        """Index several pages on demand, skipping out-of-range numbers."""
        wanted = sorted({n for n in page_numbers if self.context.has_page(n)})
        missing = [n for n in wanted if not self.is_indexed(n)]
        if missing and not self._closed:
            workers = min(self.indexing_config.max_workers, len(missing))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                layouts = list(pool.map(self.index_page, missing))
            with self._lock:
                for page_number, layout in zip(missing, layouts):
                    if self._slots[page_number - 1] is None:
                        self._slots[page_number - 1] = layout
                self._finalize()
        return [layout for n in wanted if (layout := self._slots[n - 1]) is not None]

    def get_layout(self, page_number: int) -> PageLayout | None:
        """Cached layout, or None if the page has not been indexed."""
        if not self.context.has_page(page_number):
            return None
        return self._slots[page_number - 1]

    def iter_layouts(self) -> Iterator[PageLayout]:
        """Indexed layouts in page order."""
        for slot in self._slots:
            if slot is not None:
                yield slot

    def iter_lines(self) -> Iterator[Line]:
        """All indexed lines in document reading order."""
        for layout in self.iter_layouts():
            yield from layout.lines

    @property
    def body_stats(self) -> BodyFontStats:
        if self._body_stats is None:
            with self._lock:
                if self._body_stats is None:
                    self._body_stats = compute_body_stats(self.iter_lines())
        return self._body_stats

    # --------------------------------------------------------
    # Invalidation
    # --------------------------------------------------------

    def invalidate(self, page_number: int) -> None:
        """Drop one page's layout so the next access re-indexes it."""
        if not self.context.has_page(page_number):
            return
        with self._lock:
            self._slots[page_number - 1] = None
            self._body_stats = None
            self._is_built = False

    def close(self) -> None:
        """Drop all layouts; an in-flight build stops at the next batch."""
        with self._lock:
            self._closed = True
            self._slots = [None] * self.context.page_count
            self._body_stats = None
            self._is_built = False
