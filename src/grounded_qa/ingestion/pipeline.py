"""Ingestion pipeline — from uploaded file to stored, embedded chunks.

Steps for :meth:`IngestionPipeline.ingest`:

1. Reject files above ``max_file_bytes``.
2. Classify and extract text (:mod:`grounded_qa.ingestion.loader`).
3. Atomically reserve a Document slot below ``max_docs``.
4. Chunk, embed in one batch, persist chunk rows, index vectors.

Anything failing after step 3 deletes the reserved Document (and whatever
was already written for it) before the error is re-raised.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

from langchain_core.embeddings import Embeddings
from pydantic import BaseModel

from grounded_qa.config import Settings
from grounded_qa.errors import (
    DependencyError,
    DocumentLimitReached,
    DocumentNotFound,
    FileTooLarge,
    NoChunksProduced,
    guard_dependency,
)
from grounded_qa.ingestion.chunker import ChunkOptions, ParagraphChunker
from grounded_qa.ingestion.loader import UploadedFile, extract_text
from grounded_qa.retrieval.base import VectorStoreBase
from grounded_qa.retrieval.models import IndexedChunk
from grounded_qa.storage.models import DocumentRow
from grounded_qa.storage.repository import DocumentStore, NewChunk

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
UPLOAD_SOURCE_TYPE = "upload"


class IngestionResult(BaseModel):
    document_id: str
    chunk_count: int


class IngestionPipeline:
    """Validates, chunks, embeds and stores uploaded documents.

    Parameters
    ----------
    settings:
        Limits, chunking parameters and the dependency timeout.
    store:
        Relational store for documents and chunks.
    vector_store:
        Similarity-search backend the chunk vectors are indexed into.
    embeddings:
        Embedding model used for chunk vectors.
    chunker:
        Chunker to use; defaults to one configured from *settings*.
    """

    def __init__(
        self,
        settings: Settings,
        store: DocumentStore,
        vector_store: VectorStoreBase,
        embeddings: Embeddings,
        chunker: ParagraphChunker | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.vector_store = vector_store
        self.embeddings = embeddings
        self.chunker = chunker or ParagraphChunker(ChunkOptions.from_settings(settings))

    async def ingest(self, upload: UploadedFile, title: str | None = None) -> IngestionResult:
        """Store *upload* as a new Document and return its id and chunk count."""
        t0 = time.monotonic()
        max_bytes = self.settings.max_file_bytes
        if upload.size > max_bytes:
            raise FileTooLarge(f"File too large. Max {max_bytes / 1024 / 1024:g}MB.")

        text = await asyncio.to_thread(extract_text, upload)
        title = (title or "").strip() or DEFAULT_TITLE

        document = await self.store.reserve_document(
            title=title,
            source_type=UPLOAD_SOURCE_TYPE,
            max_docs=self.settings.max_docs,
        )
        if document is None:
            raise DocumentLimitReached(
                f"Documents limit reached ({self.settings.max_docs}). Delete something first."
            )

        try:
            chunk_count = await self._index(document, upload, text)
        except Exception:
            logger.warning("Ingestion of %s failed; discarding document", document.id)
            await self._discard(document.id)
            raise

        logger.info(
            "Ingested %r as %s: %d chunk(s) in %.2fs",
            upload.name,
            document.id,
            chunk_count,
            time.monotonic() - t0,
        )
        return IngestionResult(document_id=document.id, chunk_count=chunk_count)

    async def remove(self, document_id: str) -> None:
        """Delete a document together with its chunks, vectors and query logs.

        Vectors go first: if the vector store fails, the document stays listed
        and can be removed again, and no search can return a chunk whose
        document is gone.
        """
        if await self.store.get_document(document_id) is None:
            raise DocumentNotFound(f"Document {document_id} not found")
        await self._delete_vectors(document_id)
        if not await self.store.delete_document(document_id):
            raise DocumentNotFound(f"Document {document_id} not found")

    async def list_documents(self) -> Sequence[DocumentRow]:
        return await self.store.list_documents()

    # -- internals ------------------------------------------------------------

    async def _index(self, document: DocumentRow, upload: UploadedFile, text: str) -> int:
        chunks = self.chunker.split_text(text)
        if not chunks:
            raise NoChunksProduced("No chunks produced")

        timeout = self.settings.request_timeout_seconds
        vectors = await guard_dependency(
            "embedding service", self.embeddings.aembed_documents(chunks), timeout
        )
        if len(vectors) != len(chunks):
            raise DependencyError(
                "embedding service",
                f"returned {len(vectors)} vectors for {len(chunks)} chunks",
            )

        rows = await self.store.add_chunks(
            document.id,
            [
                NewChunk(
                    chunk_index=index,
                    content=content,
                    metadata={
                        "chunk_index": index,
                        "title": document.title,
                        "file_name": upload.name,
                        "file_type": upload.mime_type,
                    },
                    embedding=vector,
                )
                for index, (content, vector) in enumerate(zip(chunks, vectors))
            ],
        )

        indexed = [
            IndexedChunk(
                id=row.id,
                document_id=row.document_id,
                content=row.content,
                embedding=row.embedding,
                metadata=row.chunk_metadata,
            )
            for row in rows
        ]
        await guard_dependency(
            "vector store", asyncio.to_thread(self.vector_store.add_chunks, indexed), timeout
        )
        return len(rows)

    async def _delete_vectors(self, document_id: str) -> None:
        await guard_dependency(
            "vector store",
            asyncio.to_thread(self.vector_store.delete_document, document_id),
            self.settings.request_timeout_seconds,
        )

    async def _discard(self, document_id: str) -> None:
        """Best-effort cleanup after a failed ingest.

        Cleanup failures are logged, never raised, so the caller still sees
        the error that aborted the ingest.
        """
        try:
            await self._delete_vectors(document_id)
        except DependencyError:
            logger.exception("Could not remove vectors of discarded document %s", document_id)
        try:
            await self.store.delete_document(document_id)
        except DependencyError:
            logger.exception("Could not remove discarded document %s", document_id)
