"""Dense and sparse embedding model management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, Sequence, Tuple

import numpy as np
from sentence_transformers import SentenceTransformer, SparseEncoder

from ragcrawler.errors import EmbeddingError
from ragcrawler.models import SparseVector

DEFAULT_DENSE_MODEL = "BAAI/bge-small-en-v1.5"
DEFAULT_SPARSE_MODEL = "prithivida/Splade_PP_en_v1"

TextKind = Literal["passage", "query"]

logger = logging.getLogger(__name__)


def _detect_device() -> str | None:
    """Return the preferred torch device, or None to let the library decide."""
    try:
        import torch

        if torch.cuda.is_available():
            logger.debug(f"CUDA GPU detected: {torch.cuda.get_device_name(0)}")
            return "cuda"
        if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            logger.debug("Apple MPS GPU detected")
            return "mps"
    except ImportError:
        logger.debug("PyTorch not available for GPU detection")
    return None


def tag_texts(texts: Iterable[str], kind: TextKind) -> List[str]:
    """Prefix texts with the passage/query marker expected by retrieval models."""
    return [f"{kind}: {text}" for text in texts]


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_DENSE_MODEL
    batch_size: int = 16
    normalize: bool = True
    device: str | None = None


class DenseEmbeddingModel:
    """Thin wrapper around `SentenceTransformer` producing unit-normalised vectors."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        if self.config.device is None:
            self.config.device = _detect_device()
        self._model = SentenceTransformer(self.config.model_name, device=self.config.device)
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(f"Loaded dense model {self.config.model_name} (dimension {self.dimension})")

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return float32 embeddings for input texts."""
        sentences = list(texts)
        if not sentences:
            return np.zeros((0, self.dimension), dtype="float32")
        embeddings = self._model.encode(
            sentences,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=self.config.normalize,
        )
        return np.asarray(embeddings).astype("float32", copy=False)


class SparseEmbeddingModel:
    """Wrapper around a SPLADE-style `SparseEncoder` returning index/weight pairs."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig(model_name=DEFAULT_SPARSE_MODEL)
        if self.config.device is None:
            self.config.device = _detect_device()
        self._model = SparseEncoder(self.config.model_name, device=self.config.device)
        logger.info(f"Loaded sparse model {self.config.model_name}")

    def embed(self, texts: Sequence[str] | Iterable[str]) -> List[SparseVector]:
        sentences = list(texts)
        if not sentences:
            return []
        embeddings = self._model.encode(
            sentences,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_tensor=True,
        )
        return [_to_sparse_vector(row) for row in _as_matrix(embeddings)]


def _as_matrix(embeddings: Any) -> np.ndarray:
    if getattr(embeddings, "is_sparse", False):
        embeddings = embeddings.to_dense()
    if hasattr(embeddings, "cpu"):
        embeddings = embeddings.cpu().numpy()
    return np.atleast_2d(np.asarray(embeddings, dtype="float32"))


def _to_sparse_vector(row: np.ndarray) -> SparseVector:
    indices = np.flatnonzero(row)
    return SparseVector(indices=indices.tolist(), values=row[indices].astype(float).tolist())


class DualEncoder:
    """Pairs a dense and a sparse model behind one batch-oriented interface.

    Both models are loaded once and reused; callers must not invoke them
    concurrently.
    """

    def __init__(self, dense_model: DenseEmbeddingModel, sparse_model: SparseEmbeddingModel) -> None:
        self.dense_model = dense_model
        self.sparse_model = sparse_model

    @property
    def dimension(self) -> int:
        return self.dense_model.dimension

    def dense(self, texts: Sequence[str], *, kind: TextKind = "passage") -> np.ndarray:
        try:
            return self.dense_model.embed(tag_texts(texts, kind))
        except Exception as exc:
            raise EmbeddingError(f"Dense embedding failed: {exc}") from exc

    def sparse(self, texts: Sequence[str], *, kind: TextKind = "passage") -> List[SparseVector]:
        try:
            return self.sparse_model.embed(tag_texts(texts, kind))
        except Exception as exc:
            raise EmbeddingError(f"Sparse embedding failed: {exc}") from exc

    def embed_passages(self, chunks: Sequence[str]) -> Tuple[np.ndarray, List[SparseVector]]:
        """Embed chunk texts with both models; output ``i`` belongs to chunk ``i``."""
        dense = self.dense(chunks, kind="passage")
        sparse = self.sparse(chunks, kind="passage")
        if len(dense) != len(sparse) or len(dense) != len(chunks):
            raise EmbeddingError(
                f"Dense and sparse embeddings have different lengths "
                f"({len(dense)} dense, {len(sparse)} sparse, {len(chunks)} chunks)"
            )
        return dense, sparse

    def embed_query(self, query: str) -> Tuple[np.ndarray, SparseVector]:
        dense = self.dense([query], kind="query")
        sparse = self.sparse([query], kind="query")
        if len(dense) != 1 or len(sparse) != 1:
            raise EmbeddingError("Query embedding did not return exactly one vector per model")
        return dense[0], sparse[0]
