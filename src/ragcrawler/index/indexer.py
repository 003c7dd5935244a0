"""Document ingestion pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from ragcrawler.embedding.encoder import DualEncoder
from ragcrawler.errors import StoreError
from ragcrawler.index.storage import QdrantVectorStore
from ragcrawler.ingestion.converter import convert_document
from ragcrawler.models import FileRecord
from ragcrawler.utils.files import content_hash, file_id_for_path
from ragcrawler.utils.text import chunk_markdown

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    chunks_stored: int = 0
    chunks_failed: int = 0
    processed_files: list[Path] = field(default_factory=list)

    def increment(self, status: str, path: Path) -> None:
        if status == "inserted":
            self.inserted += 1
        elif status == "updated":
            self.updated += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.processed_files.append(path)


class Indexer:
    """Coordinates conversion, chunking, embedding and persistence, one file at a time."""

    def __init__(
        self,
        encoder: DualEncoder,
        store: QdrantVectorStore,
        *,
        chunk_size: int = 1000,
        converter: Callable[[Path], str] = convert_document,
    ) -> None:
        self.encoder = encoder
        self.store = store
        self.chunk_size = chunk_size
        self.converter = converter

    async def index(self, paths: Sequence[Path]) -> IndexStats:
        """Ingest the given files; a failing file never stops the run."""
        stats = IndexStats()
        for path in paths:
            try:
                LOGGER.info("Processing: %s", path)
                status = await self._index_single(path, stats)
            except Exception as exc:
                LOGGER.error("Failed to process %s: %s", path, exc)
                status = "failed"
            stats.increment(status, path)
        return stats

    async def _index_single(self, path: Path, stats: IndexStats) -> str:
        text = self.converter(path)
        file_id = file_id_for_path(path)
        digest = content_hash(text)

        existing = await self.store.get_file(file_id)
        if existing is not None and existing.content_hash == digest:
            LOGGER.info("Unchanged since last ingestion: %s", path)
            return "skipped"

        chunks = chunk_markdown(text, self.chunk_size)
        if not chunks:
            LOGGER.warning("No text extracted from %s", path)
            if existing is None:
                return "skipped"
            await self.store.delete_file_chunks(file_id)
            await self.store.upsert_file(self._record(path, file_id, digest, text))
            return "updated"

        # Embed before any write so a failed batch leaves nothing behind
        dense, sparse = self.encoder.embed_passages(chunks)
        LOGGER.debug("Generated %d dense and %d sparse embeddings", len(dense), len(sparse))

        if existing is not None:
            await self.store.delete_file_chunks(file_id)

        failed = 0
        for position, (chunk, dense_vector, sparse_vector) in enumerate(zip(chunks, dense, sparse)):
            try:
                await self.store.upsert_chunk(file_id, chunk, position, dense_vector, sparse_vector)
                stats.chunks_stored += 1
            except StoreError as exc:
                LOGGER.warning("Skipping chunk %d of %s: %s", position, path, exc)
                stats.chunks_failed += 1
                failed += 1

        if failed == len(chunks):
            raise StoreError(f"None of the {len(chunks)} chunks of {path} could be stored")

        # The record goes last; an incomplete file keeps no hash so the next run retries it
        await self.store.upsert_file(
            self._record(path, file_id, digest if not failed else "", text)
        )
        return "updated" if existing is not None else "inserted"

    @staticmethod
    def _record(path: Path, file_id: str, digest: str, text: str) -> FileRecord:
        stat = path.stat()
        return FileRecord(
            file_id=file_id,
            path=str(path),
            name=path.name,
            size=stat.st_size,
            modified_time=int(stat.st_mtime),
            content_hash=digest,
            content=text,
        )
