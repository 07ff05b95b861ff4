"""PDF reading backends."""

from docstruct.readers.pdf_reader import PDFReader, font_style_from_span

__all__ = ["PDFReader", "font_style_from_span"]
