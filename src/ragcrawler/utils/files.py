"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
import uuid
from pathlib import Path
from typing import Iterable, Iterator

SUPPORTED_EXTENSIONS = frozenset({".pdf", ".xlsx", ".doc", ".docx", ".ppt", ".pptx"})


def is_supported_file(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def _modified_since(path: Path, since: int | None) -> bool:
    if since is None:
        return True
    try:
        return int(path.stat().st_mtime) >= since
    except OSError:
        # Include files whose modification time cannot be read
        return True


def iter_document_paths(inputs: Iterable[Path], *, since: int | None = None) -> Iterator[Path]:
    """Yield supported document paths, descending into directories.

    When ``since`` (Unix seconds) is given, only files modified at or after it are kept.
    """
    for item in inputs:
        if item.is_dir():
            yield from iter_document_paths(
                sorted(child for child in item.rglob("*") if child.is_file()), since=since
            )
        elif item.is_file() and is_supported_file(item) and _modified_since(item, since):
            yield item


def file_id_for_path(path: Path | str) -> str:
    """Return the stable point id for a file path.

    The MD5 digest of the path string is formatted as a UUID so the vector
    store accepts it as a point id.
    """
    digest = hashlib.md5(str(path).encode("utf-8")).hexdigest()
    return str(uuid.UUID(hex=digest))


def content_hash(text: str) -> str:
    """Compute the MD5 hash of converted document text."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()
