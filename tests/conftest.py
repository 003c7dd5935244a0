"""Shared fixtures: deterministic embedding stand-ins and an in-memory store."""

from __future__ import annotations

import zlib
from typing import Iterable, List

import numpy as np
import pytest
from qdrant_client import AsyncQdrantClient

from ragcrawler.embedding.encoder import DualEncoder
from ragcrawler.index.storage import QdrantVectorStore
from ragcrawler.models import SparseVector

DIMENSION = 4


def _tokens(text: str) -> List[str]:
    # Drop the "passage:"/"query:" marker so both sides share a vocabulary
    body = text.split(": ", 1)[1] if ": " in text else text
    return [token.strip(".,!?").lower() for token in body.split() if token.strip(".,!?")]


class FakeDenseModel:
    dimension = DIMENSION

    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    def embed(self, texts: Iterable[str]) -> np.ndarray:
        texts = list(texts)
        self.calls.append(texts)
        rows = []
        for text in texts:
            lowered = text.lower()
            rows.append([len(lowered) % 7 + 1.0, lowered.count("a") + 0.5, lowered.count("e") + 0.5, 1.0])
        vectors = np.asarray(rows, dtype="float32").reshape(len(texts), DIMENSION)
        norms = np.linalg.norm(vectors, axis=1, keepdims=True)
        return vectors / np.where(norms == 0, 1, norms)


class FakeSparseModel:
    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    def embed(self, texts: Iterable[str]) -> List[SparseVector]:
        texts = list(texts)
        self.calls.append(texts)
        vectors = []
        for text in texts:
            weights: dict[int, float] = {}
            for token in _tokens(text):
                index = zlib.crc32(token.encode("utf-8")) % 30522
                weights[index] = weights.get(index, 0.0) + 1.0
            vectors.append(SparseVector(indices=list(weights), values=list(weights.values())))
        return vectors


@pytest.fixture
def fake_encoder() -> DualEncoder:
    return DualEncoder(FakeDenseModel(), FakeSparseModel())


@pytest.fixture
async def memory_store():
    store = QdrantVectorStore(AsyncQdrantClient(location=":memory:"), dimension=DIMENSION)
    await store.initialize()
    yield store
    await store.close()
