"""Qdrant-backed store for file metadata and dual-vector chunks."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

import numpy as np
from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import UnexpectedResponse

from ragcrawler.errors import RetrievalError, StoreError
from ragcrawler.index.fusion import DEFAULT_RANK_CONSTANT, reciprocal_rank_fusion
from ragcrawler.models import ChunkRecord, FileRecord, SparseVector

DENSE_VECTOR_NAME = "text-dense"
SPARSE_VECTOR_NAME = "text-sparse"

# The metadata collection is only used for keyed lookups
PLACEHOLDER_VECTOR = [1.0]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Candidate:
    """A chunk point returned by a prefetch search or by fusion."""

    point_id: str
    chunk: ChunkRecord
    score: float
    ranks: Dict[str, int] = field(default_factory=dict)


class QdrantVectorStore:
    """Persistence layer for file records and chunk embeddings.

    Two collections are kept: ``files_collection`` holds one point per
    FileRecord keyed by its deterministic id, ``chunks_collection`` holds one
    point per chunk with named dense and sparse vectors.
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        *,
        dimension: int,
        files_collection: str = "files",
        chunks_collection: str = "file_embeddings",
    ) -> None:
        self.client = client
        self.dimension = dimension
        self.files_collection = files_collection
        self.chunks_collection = chunks_collection

    @classmethod
    def from_url(cls, url: str, *, dimension: int, **kwargs) -> "QdrantVectorStore":
        return cls(AsyncQdrantClient(url=url, timeout=30), dimension=dimension, **kwargs)

    async def close(self) -> None:
        await self.client.close()

    async def initialize(self) -> None:
        """Create both collections if they are missing."""
        await self._ensure_collection(
            self.files_collection,
            vectors_config=models.VectorParams(size=1, distance=models.Distance.COSINE),
        )
        created = await self._ensure_collection(
            self.chunks_collection,
            vectors_config={
                DENSE_VECTOR_NAME: models.VectorParams(
                    size=self.dimension, distance=models.Distance.COSINE
                )
            },
            sparse_vectors_config={SPARSE_VECTOR_NAME: models.SparseVectorParams()},
        )
        if created:
            await self.client.create_payload_index(
                collection_name=self.chunks_collection,
                field_name="file_id",
                field_schema=models.PayloadSchemaType.KEYWORD,
            )

    async def _ensure_collection(self, name: str, **config) -> bool:
        if await self.client.collection_exists(name):
            LOGGER.debug("Collection already exists: %s", name)
            return False
        try:
            await self.client.create_collection(collection_name=name, **config)
        except UnexpectedResponse as exc:
            if exc.status_code == 409:
                LOGGER.debug("Collection created concurrently: %s", name)
                return False
            raise StoreError(f"Failed to create collection {name}: {exc}") from exc
        LOGGER.info("Created collection: %s", name)
        return True

    async def upsert_file(self, record: FileRecord) -> str:
        """Write or overwrite a file record; returns its id."""
        point = models.PointStruct(
            id=record.file_id, vector=PLACEHOLDER_VECTOR, payload=record.to_payload()
        )
        try:
            await self.client.upsert(
                collection_name=self.files_collection, points=[point], wait=True
            )
        except Exception as exc:
            raise StoreError(f"Failed to store file {record.path}: {exc}") from exc
        return record.file_id

    async def get_file(self, file_id: str) -> FileRecord | None:
        files = await self.get_files([file_id])
        return files.get(file_id)

    async def get_files(self, file_ids: Iterable[str]) -> Dict[str, FileRecord]:
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            return {}
        try:
            points = await self.client.retrieve(
                collection_name=self.files_collection,
                ids=ids,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as exc:
            raise StoreError(f"Failed to read file records: {exc}") from exc
        records = (FileRecord.from_payload(str(point.id), point.payload or {}) for point in points)
        return {record.file_id: record for record in records}

    async def delete_file_chunks(self, file_id: str) -> None:
        """Remove every chunk point owned by ``file_id``."""
        try:
            await self.client.delete(
                collection_name=self.chunks_collection,
                points_selector=models.FilterSelector(filter=_file_filter(file_id)),
                wait=True,
            )
        except Exception as exc:
            raise StoreError(f"Failed to delete chunks of {file_id}: {exc}") from exc

    async def upsert_chunk(
        self,
        file_id: str,
        chunk: str,
        position: int,
        dense_vector: np.ndarray | Sequence[float],
        sparse_vector: SparseVector,
    ) -> str:
        """Store one chunk with both vectors; acknowledged before returning."""
        point_id = str(uuid.uuid4())
        point = models.PointStruct(
            id=point_id,
            vector={
                DENSE_VECTOR_NAME: np.asarray(dense_vector, dtype="float32").tolist(),
                SPARSE_VECTOR_NAME: _to_qdrant_sparse(sparse_vector),
            },
            payload=ChunkRecord(file_id=file_id, index=position, text=chunk).to_payload(),
        )
        try:
            await self.client.upsert(
                collection_name=self.chunks_collection, points=[point], wait=True
            )
        except Exception as exc:
            raise StoreError(f"Failed to store chunk {position} of {file_id}: {exc}") from exc
        return point_id

    async def count_files(self) -> int:
        try:
            result = await self.client.count(collection_name=self.files_collection, exact=True)
        except Exception as exc:
            raise StoreError(f"Failed to count file records: {exc}") from exc
        return result.count

    async def count_chunks(self, file_id: str | None = None) -> int:
        try:
            result = await self.client.count(
                collection_name=self.chunks_collection,
                count_filter=_file_filter(file_id) if file_id else None,
                exact=True,
            )
        except Exception as exc:
            raise StoreError(f"Failed to count chunks: {exc}") from exc
        return result.count

    async def search_dense(self, vector: np.ndarray | Sequence[float], *, limit: int) -> List[Candidate]:
        query = np.asarray(vector, dtype="float32").tolist()
        return await self._prefetch(query, DENSE_VECTOR_NAME, limit)

    async def search_sparse(self, vector: SparseVector, *, limit: int) -> List[Candidate]:
        if not len(vector):
            return []
        return await self._prefetch(_to_qdrant_sparse(vector), SPARSE_VECTOR_NAME, limit)

    async def _prefetch(self, query, using: str, limit: int) -> List[Candidate]:
        response = await self.client.query_points(
            collection_name=self.chunks_collection,
            query=query,
            using=using,
            limit=limit,
            with_payload=True,
        )
        return [
            Candidate(
                point_id=str(point.id),
                chunk=ChunkRecord.from_payload(point.payload or {}),
                score=float(point.score),
            )
            for point in response.points
        ]

    async def hybrid_query(
        self,
        dense_vector: np.ndarray | Sequence[float],
        sparse_vector: SparseVector,
        *,
        prefetch_k: int = 25,
        fusion_k: int = 50,
        rank_constant: int = DEFAULT_RANK_CONSTANT,
    ) -> List[Candidate]:
        """Prefetch with each vector independently and fuse the two rankings with RRF.

        Returns at most ``fusion_k`` candidates ordered by fused score. A
        prefetch that finds nothing simply contributes no ranks.
        """
        try:
            dense = await self.search_dense(dense_vector, limit=prefetch_k)
            sparse = await self.search_sparse(sparse_vector, limit=prefetch_k)
        except Exception as exc:
            raise RetrievalError(f"Prefetch search failed: {exc}") from exc

        LOGGER.debug("Prefetch returned %d dense and %d sparse candidates", len(dense), len(sparse))
        fused = reciprocal_rank_fusion(
            {"dense": dense, "sparse": sparse},
            key=lambda candidate: candidate.point_id,
            k=rank_constant,
            limit=fusion_k,
        )
        return [
            Candidate(
                point_id=entry.item.point_id,
                chunk=entry.item.chunk,
                score=entry.score,
                ranks=dict(entry.ranks),
            )
            for entry in fused
        ]


def _file_filter(file_id: str) -> models.Filter:
    return models.Filter(
        must=[models.FieldCondition(key="file_id", match=models.MatchValue(value=file_id))]
    )


def _to_qdrant_sparse(vector: SparseVector) -> models.SparseVector:
    return models.SparseVector(indices=list(vector.indices), values=list(vector.values))
