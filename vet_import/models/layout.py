from __future__ import annotations

from dataclasses import dataclass

"""Layout primitives produced by the PDF extraction backends."""

__all__ = [
    "RawLine",
    "TextRun",
]


@dataclass(frozen=True)
class RawLine:
    """A trimmed, non-empty line; position is optional (plain text has none)."""
    text: str
    x: float | None = None
    y: float | None = None
    page: int = 0


@dataclass(frozen=True)
class TextRun:
    """Positioned text item as reported by the positioned backend."""
    x: float
    y: float
    text: str
    page: int = 0
