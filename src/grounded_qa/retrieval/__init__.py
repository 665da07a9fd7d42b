"""
Retrieval — vector indexing, similarity search, and citation mapping.

This module wraps the vector store behind a clean interface so that
the pipelines never need to know which DB is backing retrieval.

Public surface
--------------
- :class:`SemanticRetriever` — maps similarity matches to :class:`SourceRef`.
- :class:`VectorStoreBase` — abstract backend (subclass for pgvector, etc.).
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`IndexedChunk`, :class:`MatchRecord`, :class:`SourceRef` — data models.
"""

from grounded_qa.retrieval.base import VectorStoreBase
from grounded_qa.retrieval.models import IndexedChunk, MatchRecord, SourceRef
from grounded_qa.retrieval.retriever import SemanticRetriever

__all__ = [
    "ChromaVectorStore",
    "IndexedChunk",
    "MatchRecord",
    "SemanticRetriever",
    "SourceRef",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from grounded_qa.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
