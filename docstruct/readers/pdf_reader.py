"""
PDF Reader using PyMuPDF (fitz).

Extracts text runs, link annotations, named destinations, bookmarks and
metadata into a read-only DocumentContext.

This module provides raw extraction - structure analysis is handled
by DocumentAnalyzer.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import fitz  # PyMuPDF

from docstruct.context import Bookmark, DocumentContext, LinkDestination, NativeLink, PageContent
from docstruct.exceptions import DocumentOpenError
from docstruct.models import FontStyle, Rect, TextRun

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

# Font-name fragments that imply a style when the engine flags say nothing
_BOLD_NAME = re.compile(r"bold|black|heavy|semibold|-bd\b|-medi|cmbx", re.IGNORECASE)
_ITALIC_NAME = re.compile(r"italic|ital\b|oblique|slant|-it\b", re.IGNORECASE)

# Characters below U+0020 other than tab/newline carry no text
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f]")


def font_style_from_span(font_name: str, flags: int) -> FontStyle:
    """Combine PyMuPDF span flags with font-name keywords."""
    bold = bool(flags & 2**4) or bool(_BOLD_NAME.search(font_name))
    italic = bool(flags & 2**1) or bool(_ITALIC_NAME.search(font_name))
    return FontStyle.from_flags(bold, italic)


class PDFReader:
    """Extracts a DocumentContext from PDFs using PyMuPDF.

    Usage:
        reader = PDFReader()
        context = reader.read("/path/to/file.pdf")
        # context.get_runs(1), context.get_links(1), context.bookmarks, ...
    """

    def __init__(self, *, extract_links: bool = True, extract_bookmarks: bool = True):
        """Initialize the PDF reader.

        Args:
            extract_links: Whether to read link annotations.
            extract_bookmarks: Whether to read the outline tree.
        """
        self.extract_links = extract_links
        self.extract_bookmarks = extract_bookmarks

    def read(self, path: str | Path) -> DocumentContext:
        """Read a PDF file and extract everything the analysis core needs.

        Args:
            path: Path to PDF file.

        Returns:
            DocumentContext with pages, links, bookmarks, metadata.

        Raises:
            FileNotFoundError: If file doesn't exist.
            DocumentOpenError: If the engine cannot open the file.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"PDF not found: {path}")

        try:
            doc = fitz.open(path)
        except Exception as e:
            raise DocumentOpenError(f"Failed to open PDF: {e}") from e

        try:
            if doc.needs_pass:
                raise DocumentOpenError(f"PDF is encrypted: {path}")
            return self.read_document(doc, source=str(path))
        finally:
            doc.close()

    def read_document(self, doc: fitz.Document, *, source: str | None = None) -> DocumentContext:
        """Extract from an already-open document (the caller keeps ownership)."""
        named = self._extract_named_destinations(doc)
        pages = list(self._extract_pages(doc, named))
        bookmarks = self._extract_bookmarks(doc, named) if self.extract_bookmarks else []
        metadata = self._extract_metadata(doc)

        logger.debug(
            "Read %s: %d pages, %d bookmarks, %d named destinations",
            source,
            len(pages),
            len(bookmarks),
            len(named),
        )
        return DocumentContext(
            pages,
            bookmarks=bookmarks,
            metadata=metadata,
            named_destinations=named,
            source=source,
        )

    # --------------------------------------------------------
    # Pages
    # --------------------------------------------------------

    def _extract_pages(
        self, doc: fitz.Document, named: dict[str, LinkDestination]
    ) -> Iterator[PageContent]:
        """Extract data from each page."""
        for page_idx in range(len(doc)):
            yield self._extract_page(doc, page_idx, named)

    def _extract_page(
        self, doc: fitz.Document, page_idx: int, named: dict[str, LinkDestination]
    ) -> PageContent:
        """Extract data from a single page; a failing page yields zero runs."""
        page_number = page_idx + 1
        try:
            page = doc[page_idx]
            rect = page.rect
            width, height = rect.width, rect.height
        except Exception as e:
            logger.warning("Page %d could not be loaded: %s", page_number, e)
            return PageContent(page_number, 0.0, 0.0, extraction_failed=True)

        try:
            label = page.get_label() or str(page_number)
        except Exception:
            label = str(page_number)

        try:
            runs = tuple(self._extract_runs(page))
        except Exception as e:
            logger.warning("Text extraction failed on page %d: %s", page_number, e)
            return PageContent(page_number, width, height, label=label, extraction_failed=True)

        links: tuple[NativeLink, ...] = ()
        if self.extract_links:
            try:
                links = tuple(self._extract_links(page, named))
            except Exception as e:
                logger.warning("Link extraction failed on page %d: %s", page_number, e)

        return PageContent(
            page_number=page_number,
            width=width,
            height=height,
            runs=runs,
            links=links,
            label=label,
        )

    def _extract_runs(self, page: fitz.Page) -> Iterator[TextRun]:
        """One TextRun per non-blank span."""
        page_dict = page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)

        for block in page_dict.get("blocks", []):
            # Skip image blocks
            if block.get("type") != 0:
                continue

            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = _CONTROL_CHARS.sub("", span.get("text", ""))
                    if not text.strip():
                        continue

                    x0, y0, x1, y1 = span.get("bbox", (0, 0, 0, 0))
                    font = span.get("font", "") or ""
                    flags = span.get("flags", 0)

                    yield TextRun(
                        text=text,
                        x=x0,
                        y=y0,
                        width=max(0.0, x1 - x0),
                        height=max(0.0, y1 - y0),
                        font_name=font or None,
                        font_size=span.get("size") or None,
                        style=font_style_from_span(font, flags),
                        is_superscript=bool(flags & 2**0),
                    )

    def _extract_links(
        self, page: fitz.Page, named: dict[str, LinkDestination]
    ) -> Iterator[NativeLink]:
        for link in page.get_links():
            bbox = link.get("from")
            if bbox is None:
                continue
            rect = Rect(bbox.x0, bbox.y0, bbox.width, bbox.height)
            kind = link.get("kind")

            if kind == fitz.LINK_GOTO:
                yield NativeLink(rect, destination=_destination(link.get("page"), link.get("to")))
            elif kind == fitz.LINK_NAMED:
                name = link.get("nameddest") or link.get("name")
                destination = named.get(name) if name else None
                if destination is None and link.get("page") is not None:
                    destination = _destination(link.get("page"), link.get("to"))
                yield NativeLink(rect, destination=destination, named_destination=name)
            elif kind == fitz.LINK_URI:
                yield NativeLink(rect, uri=link.get("uri"))

    # --------------------------------------------------------
    # Document-level
    # --------------------------------------------------------

    def _extract_named_destinations(self, doc: fitz.Document) -> dict[str, LinkDestination]:
        try:
            raw = doc.resolve_names()
        except Exception as e:
            # Older PyMuPDF builds or a broken name tree
            logger.debug("Named destinations unavailable: %s", e)
            return {}

        named = {}
        for name, target in raw.items():
            destination = _destination(target.get("page"), target.get("to"))
            if destination is not None:
                named[name] = destination
        return named

    def _extract_bookmarks(
        self, doc: fitz.Document, named: dict[str, LinkDestination]
    ) -> list[Bookmark]:
        """Turn the flat ``get_toc`` list into a tree."""
        try:
            toc = doc.get_toc(simple=False)
        except Exception as e:
            logger.warning("Malformed bookmark tree ignored: %s", e)
            return []

        roots: list[dict[str, Any]] = []
        stack: list[tuple[int, dict[str, Any]]] = []
        for entry in toc:
            level, title, page_num = entry[0], entry[1], entry[2]
            dest = entry[3] if len(entry) > 3 and isinstance(entry[3], dict) else {}

            destination = None
            if dest.get("named") and dest["named"] in named:
                destination = named[dest["named"]]
            elif page_num and page_num > 0:
                # page_num is 1-based
                destination = _destination(page_num - 1, dest.get("to"))

            node = {"title": (title or "").strip(), "destination": destination, "children": []}
            while stack and stack[-1][0] >= level:
                stack.pop()
            if stack:
                stack[-1][1]["children"].append(node)
            else:
                roots.append(node)
            stack.append((level, node))

        return [_freeze_bookmark(node) for node in roots]

    def _extract_metadata(self, doc: fitz.Document) -> dict[str, str | None]:
        """Extract PDF metadata."""
        meta = doc.metadata or {}
        return {
            "title": meta.get("title") or None,
            "author": meta.get("author") or None,
            "subject": meta.get("subject") or None,
            "creator": meta.get("creator") or None,
            "producer": meta.get("producer") or None,
            "creation_date": meta.get("creationDate") or None,
            "mod_date": meta.get("modDate") or None,
        }


def _destination(page: Any, point: Any) -> LinkDestination | None:
    if page is None or page < 0:
        return None
    if point is None:
        return LinkDestination(int(page))
    try:
        x, y = point[0], point[1]
    except (TypeError, IndexError):
        x, y = getattr(point, "x", 0.0), getattr(point, "y", 0.0)
    return LinkDestination(int(page), float(x), float(y))


def _freeze_bookmark(node: dict[str, Any]) -> Bookmark:
    return Bookmark(
        title=node["title"],
        destination=node["destination"],
        children=tuple(_freeze_bookmark(child) for child in node["children"]),
    )
