"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from ragcrawler.embedding.encoder import DEFAULT_DENSE_MODEL, DEFAULT_SPARSE_MODEL
from ragcrawler.embedding.reranker import DEFAULT_RERANKER_MODEL
from ragcrawler.errors import ConfigurationError

DEFAULT_QDRANT_URL = "http://localhost:6333"


@dataclass(slots=True)
class AppConfig:
    qdrant_url: str = DEFAULT_QDRANT_URL
    files_collection: str = "files"
    chunks_collection: str = "file_embeddings"
    chunk_size: int = 1000
    dense_model: str = DEFAULT_DENSE_MODEL
    sparse_model: str = DEFAULT_SPARSE_MODEL
    reranker_model: str = DEFAULT_RERANKER_MODEL
    prefetch_k: int = 25
    fusion_k: int = 50
    top_k: int = 10
    rrf_k: int = 60

    @classmethod
    def from_env(cls, **overrides: object) -> "AppConfig":
        """Build a config, letting ``QDRANT_URL`` replace the default store URL."""
        load_dotenv()
        config = cls(qdrant_url=os.getenv("QDRANT_URL", DEFAULT_QDRANT_URL))
        for name, value in overrides.items():
            if value is not None:
                setattr(config, name, value)
        return config


@dataclass(slots=True)
class LLMConfig:
    """Chat-completion endpoint settings."""

    api_key: str
    url: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: float = 120.0

    @classmethod
    def from_env(cls) -> "LLMConfig":
        load_dotenv()
        values = {}
        for field_name, variable in (
            ("api_key", "OPENAI_API_KEY"),
            ("url", "OPENAI_URL"),
            ("model", "OPENAI_MODEL"),
        ):
            value = os.getenv(variable)
            if not value:
                raise ConfigurationError(f"Environment variable {variable} is not set")
            values[field_name] = value
        return cls(**values)
