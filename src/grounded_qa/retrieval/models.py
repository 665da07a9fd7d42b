"""Domain models for indexed chunks, search matches and source citations."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, computed_field


class IndexedChunk(BaseModel):
    """A chunk as handed to the vector store for indexing."""

    id: str
    document_id: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class MatchRecord(BaseModel):
    """One row returned by a similarity search.

    Raw backend rows are validated into this shape before anything else
    touches them.

    Attributes
    ----------
    id:
        Chunk identifier.
    document_id:
        Owning document.
    content:
        Full chunk text.
    metadata:
        Chunk metadata (``chunk_index``, ``title``, ``file_name``, ``file_type``).
    similarity:
        Similarity to the query vector; higher is closer.
    title:
        Document title when the backend returns it as a column.
    """

    id: str
    document_id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity: float
    title: str | None = None


class SourceRef(BaseModel):
    """Citation linking an answer to the chunk it was drawn from."""

    chunk_id: str
    document_id: str
    title: str = "Untitled"
    snippet: str
    similarity: float

    @computed_field  # type: ignore[prop-decorator]
    @property
    def score(self) -> float:
        """Alias of ``similarity`` kept for API clients."""
        return self.similarity

    def short_ref(self) -> str:
        """Return a compact ``[title§chunk_id]`` reference string."""
        return f"[{self.title}§{self.chunk_id}]"
