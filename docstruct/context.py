"""
Read-only document context.

``DocumentContext`` is the single surface the analysis core reads from:
per-page text runs, page sizes, native link annotations, named
destinations, the bookmark tree and engine metadata. It is built once
per document load (by ``PDFReader`` or ``DocumentContext.from_pages``)
and never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from docstruct.models import Rect, TargetLocation, TextRun

# US Letter, in points
DEFAULT_PAGE_WIDTH = 612.0
DEFAULT_PAGE_HEIGHT = 792.0


@dataclass(frozen=True)
class LinkDestination:
    """Where a native link or bookmark points (0-based page index)."""

    page_index: int
    x: float = 0.0
    y: float = 0.0

    @property
    def is_valid(self) -> bool:
        """A (0, 0) point is how engines report a destination they could not resolve."""
        return self.page_index >= 0 and not (self.x == 0 and self.y == 0)

    @property
    def page_number(self) -> int:
        return self.page_index + 1

    def to_location(self) -> TargetLocation:
        return TargetLocation(page_index=self.page_index, x=self.x, y=self.y)


@dataclass(frozen=True)
class NativeLink:
    """A link annotation on a page."""

    rect: Rect
    destination: LinkDestination | None = None
    uri: str | None = None
    named_destination: str | None = None

    @property
    def is_internal(self) -> bool:
        return self.destination is not None


@dataclass(frozen=True)
class Bookmark:
    """A node of the document's own outline (table of contents)."""

    title: str
    destination: LinkDestination | None
    children: tuple[Bookmark, ...] = ()


@dataclass(frozen=True)
class PageContent:
    """Everything the core needs from one page."""

    page_number: int  # 1-based
    width: float
    height: float
    runs: tuple[TextRun, ...] = ()
    links: tuple[NativeLink, ...] = ()
    label: str | None = None
    extraction_failed: bool = False


class DocumentContext:
    """Immutable view over an extracted document.

    Example:
        >>> ctx = DocumentContext.from_pages([[TextRun("Hello", 72, 72, 30, 10)]])
        >>> ctx.page_count
        1
    """

    def __init__(
        self,
        pages: Sequence[PageContent],
        *,
        bookmarks: Sequence[Bookmark] = (),
        metadata: Mapping[str, Any] | None = None,
        named_destinations: Mapping[str, LinkDestination] | None = None,
        source: str | None = None,
    ):
        self._pages = tuple(pages)
        self._bookmarks = tuple(bookmarks)
        self._metadata = MappingProxyType(dict(metadata or {}))
        self._named = MappingProxyType(dict(named_destinations or {}))
        self.source = source

    @classmethod
    def from_pages(
        cls,
        pages: Iterable[PageContent | Sequence[TextRun]],
        *,
        width: float = DEFAULT_PAGE_WIDTH,
        height: float = DEFAULT_PAGE_HEIGHT,
        bookmarks: Sequence[Bookmark] = (),
        metadata: Mapping[str, Any] | None = None,
        named_destinations: Mapping[str, LinkDestination] | None = None,
    ) -> DocumentContext:
        """Build a context from in-memory pages.

        Each item is either a ready ``PageContent`` or a plain sequence of
        runs, which becomes a page of the given default size.
        """
        built = []
        for i, page in enumerate(pages):
            if isinstance(page, PageContent):
                built.append(page)
            else:
                built.append(
                    PageContent(page_number=i + 1, width=width, height=height, runs=tuple(page))
                )
        return cls(
            built,
            bookmarks=bookmarks,
            metadata=metadata,
            named_destinations=named_destinations,
        )

    @classmethod
    def empty(cls, source: str | None = None) -> DocumentContext:
        return cls((), source=source)

    # --------------------------------------------------------
    # Accessors
    # --------------------------------------------------------

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def page_numbers(self) -> range:
        return range(1, len(self._pages) + 1)

    def has_page(self, page_number: int) -> bool:
        return 1 <= page_number <= len(self._pages)

    def page(self, page_number: int) -> PageContent | None:
        if not self.has_page(page_number):
            return None
        return self._pages[page_number - 1]

    def page_size(self, page_number: int) -> tuple[float, float] | None:
        page = self.page(page_number)
        return (page.width, page.height) if page else None

    def get_runs(self, page_number: int) -> tuple[TextRun, ...]:
        page = self.page(page_number)
        return page.runs if page else ()

    def get_links(self, page_number: int) -> tuple[NativeLink, ...]:
        page = self.page(page_number)
        return page.links if page else ()

    def page_label(self, page_number: int) -> str | None:
        page = self.page(page_number)
        return page.label if page else None

    def resolve_named_destination(self, name: str) -> LinkDestination | None:
        return self._named.get(name)

    @property
    def bookmarks(self) -> tuple[Bookmark, ...]:
        return self._bookmarks

    @property
    def metadata(self) -> Mapping[str, Any]:
        return self._metadata

    def __repr__(self) -> str:
        return f"DocumentContext(source={self.source!r}, pages={self.page_count})"
