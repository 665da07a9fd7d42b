"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from grounded_qa.config import Settings
from grounded_qa.retrieval.base import VectorStoreBase
from grounded_qa.retrieval.models import IndexedChunk

logger = logging.getLogger(__name__)

# Chroma metadata values must be scalars.
_SCALAR_TYPES = (str, int, float, bool)


def _chroma_metadata(chunk: IndexedChunk) -> dict[str, Any]:
    meta = {k: v for k, v in chunk.metadata.items() if isinstance(v, _SCALAR_TYPES)}
    meta["document_id"] = chunk.document_id
    return meta


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store using cosine distance.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    client:
        A ready Chroma client.  Use :meth:`from_settings` to build one from
        configuration.
    """

    def __init__(self, collection_name: str, *, client: Any) -> None:
        super().__init__(collection_name)
        self._client = client
        self._collection = client.get_or_create_collection(
            collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> ChromaVectorStore:
        if settings.chroma_persist_directory:
            client = chromadb.PersistentClient(path=settings.chroma_persist_directory)
        else:
            client = chromadb.HttpClient(host=settings.chroma_host, port=settings.chroma_port)
        return cls(settings.chroma_collection, client=client)

    # -- VectorStoreBase overrides --------------------------------------------

    def add_chunks(self, chunks: list[IndexedChunk]) -> None:
        if not chunks:
            return
        self._collection.upsert(
            ids=[c.id for c in chunks],
            embeddings=[c.embedding for c in chunks],
            documents=[c.content for c in chunks],
            metadatas=[_chroma_metadata(c) for c in chunks],
        )
        logger.debug("Upserted %d chunk(s) into %s", len(chunks), self.collection_name)

    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 10,
        threshold: float = 0.0,
    ) -> list[dict[str, Any]]:
        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=k,
            include=["documents", "metadatas", "distances"],
        )

        hits: list[dict[str, Any]] = []
        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        for chunk_id, content, meta, dist in zip(ids, docs, metas, distances):
            # Cosine space: distance = 1 - cosine similarity.
            similarity = 1.0 - dist
            if similarity < threshold:
                continue
            meta = dict(meta or {})
            hits.append(
                {
                    "id": chunk_id,
                    "document_id": meta.pop("document_id", None),
                    "content": content or "",
                    "metadata": meta,
                    "similarity": similarity,
                }
            )
        return hits

    def delete_document(self, document_id: str) -> None:
        self._collection.delete(where={"document_id": document_id})

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
