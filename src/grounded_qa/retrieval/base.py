"""Abstract base class for vector-store backends.

Adding a new backend (pgvector, Qdrant, Pinecone …) only requires
subclassing :class:`VectorStoreBase` and implementing the abstract methods.
The rest of the retrieval stack is backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from grounded_qa.retrieval.models import IndexedChunk


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    All methods are blocking; async callers run them in a worker thread.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def add_chunks(self, chunks: list[IndexedChunk]) -> None:
        """Insert or replace *chunks*, keyed by their ``id``."""
        ...

    @abstractmethod
    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 10,
        threshold: float = 0.0,
    ) -> list[dict[str, Any]]:
        """Return up to *k* chunks most similar to *query_embedding*.

        Results are ordered by descending similarity and exclude anything
        below *threshold*.  Each result dict **must** contain:

        * ``"id"`` – chunk identifier
        * ``"document_id"`` – owning document
        * ``"content"`` – the chunk text
        * ``"metadata"`` – associated metadata dict
        * ``"similarity"`` – similarity score (higher = more similar)
        """
        ...

    @abstractmethod
    def delete_document(self, document_id: str) -> None:
        """Remove every chunk belonging to *document_id*."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...
