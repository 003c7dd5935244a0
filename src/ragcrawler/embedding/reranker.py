"""Cross-encoder reranking of retrieved candidates."""

from __future__ import annotations

import logging
from typing import List, Sequence

from sentence_transformers import CrossEncoder

DEFAULT_RERANKER_MODEL = "jinaai/jina-reranker-v1-turbo-en"

logger = logging.getLogger(__name__)


class CrossEncoderReranker:
    """Scores (query, passage) pairs jointly; higher means more relevant."""

    def __init__(
        self,
        model_name: str = DEFAULT_RERANKER_MODEL,
        *,
        batch_size: int = 16,
        device: str | None = None,
    ) -> None:
        self.model_name = model_name
        self.batch_size = batch_size
        self._model = CrossEncoder(model_name, device=device, trust_remote_code=True)
        logger.info(f"Loaded reranker model {model_name}")

    def score(self, query: str, documents: Sequence[str]) -> List[float]:
        """Return one relevance score per document, in input order."""
        if not documents:
            return []
        scores = self._model.predict(
            [(query, document) for document in documents],
            batch_size=self.batch_size,
            show_progress_bar=False,
        )
        return [float(score) for score in scores]
