from __future__ import annotations

from pathlib import Path
from typing import Protocol

import pymupdf
from pypdf import PdfReader

from ..models.layout import TextRun

"""PDF extraction backends.

Two concrete capabilities, selected by the caller (config ``pdf.backend`` or
the ``--structured`` CLI flag) rather than by probing imports at runtime:

- PypdfTextExtractor: linearized text (pypdf), input of the text heuristics
- PyMuPdfPositionedExtractor: word boxes (PyMuPDF) as TextRun pages, input of
  the coordinate strategy
"""

__all__ = [
    "PdfExtractionError",
    "TextExtractor",
    "PositionedExtractor",
    "PypdfTextExtractor",
    "PyMuPdfPositionedExtractor",
]


class PdfExtractionError(Exception):
    """Raised when a PDF cannot be opened or read."""


class TextExtractor(Protocol):
    def extract_text(self, path: Path) -> str: ...


class PositionedExtractor(Protocol):
    def extract_positioned(self, path: Path) -> list[list[TextRun]]: ...


class PypdfTextExtractor:
    """Plain text extraction, one page after another separated by newlines."""

    def extract_text(self, path: Path) -> str:
        if not path.exists():
            raise PdfExtractionError(f"PDF not found: {path}")
        try:
            reader = PdfReader(str(path), strict=False)
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            raise PdfExtractionError(f"failed to read {path}: {e}") from e
        return "\n".join(pages)


class PyMuPdfPositionedExtractor:
    """Word-level positioned extraction.

    Each word becomes a TextRun at its top-left corner. Coordinates are PDF
    points; callers tune the row tolerance through ``pdf.row_tolerance``.
    """

    def extract_positioned(self, path: Path) -> list[list[TextRun]]:
        if not path.exists():
            raise PdfExtractionError(f"PDF not found: {path}")
        pages: list[list[TextRun]] = []
        try:
            with pymupdf.open(str(path)) as doc:
                for page_index, page in enumerate(doc):
                    words = page.get_text("words")
                    # (x0, y0, x1, y1, word, block_no, line_no, word_no)
                    pages.append([
                        TextRun(x=float(w[0]), y=float(w[1]), text=str(w[4]), page=page_index)
                        for w in words
                        if str(w[4]).strip()
                    ])
        except Exception as e:
            raise PdfExtractionError(f"failed to read {path}: {e}") from e
        return pages
