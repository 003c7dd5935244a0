"""Hybrid search interface: dense + sparse prefetch, RRF fusion, cross-encoder rerank."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Sequence

from ragcrawler.embedding.encoder import DualEncoder
from ragcrawler.embedding.reranker import CrossEncoderReranker
from ragcrawler.errors import EmbeddingError, RetrievalError, StoreError
from ragcrawler.index.fusion import DEFAULT_RANK_CONSTANT
from ragcrawler.index.storage import Candidate, QdrantVectorStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchResult:
    path: str
    name: str
    chunk_index: int
    score: float
    text: str
    file_id: str = ""


class HybridSearcher:
    """High-level API to query the vector store."""

    def __init__(
        self,
        encoder: DualEncoder,
        store: QdrantVectorStore,
        reranker: CrossEncoderReranker,
        *,
        prefetch_k: int = 25,
        fusion_k: int = 50,
        rank_constant: int = DEFAULT_RANK_CONSTANT,
    ) -> None:
        self.encoder = encoder
        self.store = store
        self.reranker = reranker
        self.prefetch_k = prefetch_k
        self.fusion_k = fusion_k
        self.rank_constant = rank_constant

    async def search(self, query: str, *, top_k: int = 10) -> List[SearchResult]:
        """Return at most ``top_k`` results ordered by rerank score.

        Raises:
            RetrievalError: query embedding, prefetch, rerank or file lookup failed.
        """
        started = time.perf_counter()
        try:
            dense, sparse = self.encoder.embed_query(query)
        except EmbeddingError as exc:
            raise RetrievalError(f"Query embedding failed: {exc}") from exc
        LOGGER.debug("Query embedding: %.3fs", time.perf_counter() - started)

        fetch_started = time.perf_counter()
        candidates = await self.store.hybrid_query(
            dense,
            sparse,
            prefetch_k=self.prefetch_k,
            fusion_k=self.fusion_k,
            rank_constant=self.rank_constant,
        )
        LOGGER.debug(
            "Prefetch and fusion: %d candidates in %.3fs",
            len(candidates),
            time.perf_counter() - fetch_started,
        )
        if not candidates or top_k <= 0:
            return []

        rerank_started = time.perf_counter()
        ranked = self._rerank(query, candidates)[:top_k]
        LOGGER.debug("Reranking: %.3fs", time.perf_counter() - rerank_started)

        try:
            files = await self.store.get_files(candidate.chunk.file_id for candidate in ranked)
        except StoreError as exc:
            raise RetrievalError(f"Failed to load file records: {exc}") from exc

        results: List[SearchResult] = []
        for candidate in ranked:
            record = files.get(candidate.chunk.file_id)
            results.append(
                SearchResult(
                    path=record.path if record else "",
                    name=record.name if record else "",
                    chunk_index=candidate.chunk.index,
                    score=candidate.score,
                    text=candidate.chunk.text,
                    file_id=candidate.chunk.file_id,
                )
            )
        LOGGER.debug("Total hybrid search time: %.3fs", time.perf_counter() - started)
        return results

    def _rerank(self, query: str, candidates: Sequence[Candidate]) -> List[Candidate]:
        documents = [candidate.chunk.text for candidate in candidates]
        try:
            scores = self.reranker.score(query, documents)
        except Exception as exc:
            raise RetrievalError(f"Reranking failed: {exc}") from exc
        if len(scores) != len(candidates):
            raise RetrievalError(
                f"Reranker returned {len(scores)} scores for {len(candidates)} candidates"
            )
        rescored = [
            Candidate(
                point_id=candidate.point_id,
                chunk=candidate.chunk,
                score=float(score),
                ranks=candidate.ranks,
            )
            for candidate, score in zip(candidates, scores)
        ]
        return sorted(rescored, key=lambda candidate: candidate.score, reverse=True)
