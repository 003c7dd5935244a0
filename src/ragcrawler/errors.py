"""Exception hierarchy shared across ingestion and query paths."""

from __future__ import annotations


class RagCrawlerError(Exception):
    """Base class for all ragcrawler errors."""


class ConfigurationError(RagCrawlerError):
    """Required configuration is missing or invalid."""


class ConversionError(RagCrawlerError):
    """A file could not be converted to text."""


class EmbeddingError(RagCrawlerError):
    """An embedding batch failed or produced mismatched outputs."""


class StoreError(RagCrawlerError):
    """The vector store rejected a read or write."""


class RetrievalError(RagCrawlerError):
    """A query could not be completed (prefetch or rerank failed)."""


class SynthesisError(RagCrawlerError):
    """The language model did not produce a usable answer."""


class TruncatedResponseError(SynthesisError):
    """The language model stopped before finishing its answer."""

    def __init__(self, finish_reason: str) -> None:
        super().__init__(
            f"Response was truncated (finish_reason: {finish_reason}). "
            "Try increasing max_tokens or reducing the input size."
        )
        self.finish_reason = finish_reason
