"""Text helpers including markdown-aware chunking."""

from __future__ import annotations

import re
from typing import Iterable, List

# Boundaries tried in order, coarsest first. Separators are plain spaces once
# the text is cleaned, so rejoining pieces with " " is lossless.
_SPLIT_LEVELS = (
    re.compile(r" (?=#{1,6} )"),  # markdown headings
    re.compile(r" (?=(?:[-*+]|\d+\.) )"),  # list items
    re.compile(r"(?<=[.!?]) "),  # sentences
    re.compile(r"(?<=[,;:]) "),  # clauses
    re.compile(r" "),  # words
)


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())


def clean_whitespace(text: str) -> str:
    """Drop blank lines, trim each line and collapse whitespace runs to one space."""
    lines = (line.strip() for line in text.splitlines())
    return " ".join(" ".join(line for line in lines if line).split())


def chunk_markdown(text: str, chunk_size: int = 1000) -> List[str]:
    """Split text into chunks of at most ``chunk_size`` characters.

    The text is cleaned first so chunk boundaries do not depend on source
    formatting. Breaks prefer markdown headings, then list items, sentences,
    clauses and words; a single word longer than ``chunk_size`` is cut by
    characters as a last resort.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")

    cleaned = clean_whitespace(text)
    if not cleaned:
        return []
    return _split(cleaned, chunk_size, 0)


def _split(text: str, chunk_size: int, level: int) -> List[str]:
    if len(text) <= chunk_size:
        return [text]
    if level == len(_SPLIT_LEVELS):
        return [text[start : start + chunk_size] for start in range(0, len(text), chunk_size)]

    pieces = [piece for piece in _SPLIT_LEVELS[level].split(text) if piece]
    if len(pieces) == 1:
        return _split(text, chunk_size, level + 1)

    chunks: List[str] = []
    current = ""
    for piece in pieces:
        if len(piece) > chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_split(piece, chunk_size, level + 1))
            continue

        candidate = f"{current} {piece}" if current else piece
        if len(candidate) <= chunk_size:
            current = candidate
        else:
            chunks.append(current)
            current = piece

    if current:
        chunks.append(current)
    return chunks
