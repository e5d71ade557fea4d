"""PDF text extraction, layout normalization and report parsers."""
