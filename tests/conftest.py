"""
Pytest configuration and fixtures for docstruct tests.

Most tests build documents in memory from positioned runs; only the
integration tests write real PDF files (with PyMuPDF).
"""

from __future__ import annotations

from pathlib import Path

import fitz
import pytest

from docstruct.context import DocumentContext, PageContent
from docstruct.layout.indexer import TextLayoutIndexer
from docstruct.lexicon import load_lexicon
from docstruct.models import (
    AnchorPageRange,
    FontStyle,
    Line,
    Rect,
    ReferenceAnchor,
    TextRun,
)

PAGE_WIDTH = 612.0
PAGE_HEIGHT = 792.0
BODY_TEXT = (
    "Body text that runs across most of the column and reads like ordinary prose here."
)


def make_run(
    text: str,
    x: float,
    y: float,
    *,
    size: float = 10.0,
    style: FontStyle = FontStyle.REGULAR,
    width: float | None = None,
    height: float | None = None,
    superscript: bool = False,
) -> TextRun:
    """A run whose width is half the font size per character."""
    return TextRun(
        text=text,
        x=x,
        y=y,
        width=width if width is not None else len(text) * size * 0.5,
        height=height if height is not None else size,
        font_name="Times-Bold" if style.is_bold else "Times-Roman",
        font_size=size,
        style=style,
        is_superscript=superscript,
    )


def make_line(text: str, x: float = 72.0, y: float = 100.0, page_number: int = 1, **kwargs) -> Line:
    return Line.from_runs([make_run(text, x, y, **kwargs)], page_number)


def make_page(page_number: int, runs: list[TextRun], **kwargs) -> PageContent:
    return PageContent(
        page_number=page_number,
        width=kwargs.pop("width", PAGE_WIDTH),
        height=kwargs.pop("height", PAGE_HEIGHT),
        runs=tuple(runs),
        **kwargs,
    )


def body_runs(start_y: float, count: int, pitch: float = 14.0, x: float = 72.0) -> list[TextRun]:
    return [make_run(BODY_TEXT, x, start_y + i * pitch) for i in range(count)]


def make_anchor(
    ordinal: int,
    *,
    index: int | None = None,
    page_number: int = 2,
    y: float | None = None,
    text: str = "",
    first_author: str | None = None,
    authors: tuple[str, ...] = (),
    year: str | None = None,
) -> ReferenceAnchor:
    top = y if y is not None else 100.0 + ordinal * 20
    return ReferenceAnchor(
        id=f"ref-{ordinal}",
        index=index,
        ordinal=ordinal,
        page_number=page_number,
        start_x=72.0,
        start_y=top,
        end_page=page_number,
        end_x=500.0,
        end_y=top + 10,
        text=text or (f"[{index}] Entry {ordinal}" if index is not None else f"Entry {ordinal}"),
        confidence=0.9,
        format_hint="numbered-bracket" if index is not None else "author-year",
        first_author=first_author,
        authors=authors,
        year=year,
        page_ranges=(AnchorPageRange(page_number, (Rect(72.0, top, 428.0, 10.0),)),),
    )


def index_layouts(context: DocumentContext, **kwargs) -> TextLayoutIndexer:
    indexer = TextLayoutIndexer(context, **kwargs)
    indexer.build()
    return indexer


def write_pdf(
    path: Path,
    pages: list[list[tuple]],
    *,
    toc: list[list] | None = None,
    metadata: dict[str, str] | None = None,
    links: dict[int, list[dict]] | None = None,
) -> Path:
    """Write a PDF with PyMuPDF.

    Each page is a list of ``(text, x, baseline, fontsize, fontname)``;
    ``links`` maps a 0-based page index to ``insert_link`` dicts.
    """
    doc = fitz.open()
    for lines in pages:
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        for text, x, baseline, size, font in lines:
            page.insert_text((x, baseline), text, fontsize=size, fontname=font)
    # Links may target later pages, so every page must exist first
    for index, page_links in (links or {}).items():
        page = doc[index]
        for link in page_links:
            page.insert_link(link)
    if toc:
        doc.set_toc(toc)
    if metadata:
        doc.set_metadata(metadata)
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture(scope="session")
def lexicon():
    """The bundled pattern lexicon."""
    return load_lexicon()


@pytest.fixture
def numbered_context() -> DocumentContext:
    """Two pages: body text with bracket citations, then a numbered bibliography."""
    page1 = [
        *body_runs(100, 6),
        make_run("Earlier systems [1] and later work [1, 2] differ; see also [7].", 72, 200),
        make_run("A range of studies [1-3] agrees with this.", 72, 214),
        *body_runs(228, 6),
    ]
    page2 = [
        make_run("References", 72, 80, size=12, style=FontStyle.BOLD),
        make_run("[1] A. Smith. Deep learning for layout. J. of AI, 12(3):1-10, 2019.", 72, 100),
        make_run("[2] B. Jones and C. Lee. Parsing documents at scale. Proc. ACL, 2020.", 72, 114),
        make_run("[3] D. Brown. A survey of citation analysis methods. Springer, 2018.", 72, 128),
    ]
    return DocumentContext(
        [make_page(1, page1), make_page(2, page2)], source="numbered.pdf"
    )


@pytest.fixture
def author_year_context() -> DocumentContext:
    """Two pages: author-year citations, then an author-year bibliography."""
    page1 = [
        *body_runs(100, 6),
        make_run("Prior work (Smith, 2020) showed that layouts matter.", 72, 200),
        make_run("Jones and Lee (2019) disagree, as does Smyth (2020).", 72, 214),
        *body_runs(228, 6),
    ]
    page2 = [
        make_run("References", 72, 80, size=12, style=FontStyle.BOLD),
        make_run("Smith, J. (2020). A study of things. Journal of Stuff, 3(2), 10-20.", 72, 110),
        make_run("Jones, A., & Lee, B. (2019). Another paper on topics. Proc. 1-5.", 72, 140),
    ]
    return DocumentContext([make_page(1, page1), make_page(2, page2)], source="authoryear.pdf")
