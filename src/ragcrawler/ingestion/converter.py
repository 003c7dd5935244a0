"""Document to text conversion.

PDFs are read page by page with PyMuPDF; Office formats go through MarkItDown.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Iterator

import fitz  # PyMuPDF
from markitdown import MarkItDown

from ragcrawler.errors import ConversionError
from ragcrawler.utils.files import is_supported_file
from ragcrawler.utils.text import normalize_whitespace

LOGGER = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _markitdown() -> MarkItDown:
    return MarkItDown()


def iter_pdf_pages(path: Path) -> Iterator[str]:
    """Yield normalised text of each non-empty PDF page."""
    try:
        doc = fitz.open(path)
    except Exception as exc:
        raise ConversionError(f"Failed to open PDF {path}: {exc}") from exc

    try:
        for index in range(len(doc)):
            try:
                text = doc[index].get_text() or ""
            except Exception as exc:  # pragma: no cover - damaged page
                LOGGER.warning("Failed to read page %s in %s: %s", index, path, exc)
                continue
            normalized = normalize_whitespace(text.splitlines())
            if normalized:
                yield normalized
    finally:
        doc.close()


def convert_document(path: Path) -> str:
    """Convert a supported document to plain text.

    Raises:
        ConversionError: the file type is not supported or conversion failed.
    """
    if not is_supported_file(path):
        raise ConversionError(f"Unsupported file type: {path.suffix or path.name}")

    if path.suffix.lower() == ".pdf":
        return "\n".join(iter_pdf_pages(path))

    try:
        result = _markitdown().convert(str(path))
    except Exception as exc:
        raise ConversionError(f"Conversion failed for {path}: {exc}") from exc
    return result.text_content or ""
