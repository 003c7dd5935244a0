"""Core ragcrawler data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass(slots=True)
class SparseVector:
    """Weighted lexical features; indices are unique within one vector."""

    indices: List[int] = field(default_factory=list)
    values: List[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.indices) != len(self.values):
            raise ValueError("Sparse vector indices and values length mismatch")
        if len(set(self.indices)) != len(self.indices):
            raise ValueError("Sparse vector indices must be unique")

    def __len__(self) -> int:
        return len(self.indices)


@dataclass(slots=True)
class FileRecord:
    """One ingested source document."""

    file_id: str
    path: str
    name: str
    size: int
    modified_time: int
    content_hash: str
    content: str | None = None

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload.pop("file_id")
        payload["content"] = self.content or ""
        return payload

    @classmethod
    def from_payload(cls, file_id: str, payload: Dict[str, Any]) -> "FileRecord":
        return cls(
            file_id=str(file_id),
            path=payload.get("path", ""),
            name=payload.get("name", ""),
            size=int(payload.get("size", 0)),
            modified_time=int(payload.get("modified_time", 0)),
            content_hash=payload.get("content_hash", ""),
            content=payload.get("content") or None,
        )


@dataclass(slots=True)
class ChunkRecord:
    """Chunk of document text paired with its owning file."""

    file_id: str
    index: int
    text: str

    def to_payload(self) -> Dict[str, Any]:
        return {"file_id": self.file_id, "chunk_index": self.index, "text": self.text}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChunkRecord":
        return cls(
            file_id=str(payload.get("file_id", "")),
            index=int(payload.get("chunk_index", 0)),
            text=payload.get("text", ""),
        )
