"""Unit tests for the ingestion pipeline.

The pipeline runs against a real in-memory SQLite store, the in-memory
vector store and deterministic letter-frequency embeddings from conftest.
"""

from __future__ import annotations

import pytest
from langchain_core.embeddings import Embeddings

from grounded_qa.errors import (
    DependencyError,
    DocumentLimitReached,
    DocumentNotFound,
    EmptyFile,
    FileTooLarge,
    NoChunksProduced,
    UnsupportedFileType,
)
from grounded_qa.ingestion.chunker import ChunkOptions, ParagraphChunker
from grounded_qa.ingestion.loader import UploadedFile
from grounded_qa.ingestion.pipeline import IngestionPipeline

NOTES = (
    "Kubernetes schedules pods onto nodes.\n\n"
    "A deployment keeps a set of replicas running.\n\n"
    "Services give pods a stable network identity."
)


def _upload(text: str = NOTES, name: str = "notes.md", mime: str = "text/markdown") -> UploadedFile:
    return UploadedFile(name=name, mime_type=mime, data=text.encode())


class ExplodingEmbeddings(Embeddings):
    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        raise RuntimeError("quota exceeded")

    def embed_query(self, text: str) -> list[float]:
        raise RuntimeError("quota exceeded")


class ShortEmbeddings(Embeddings):
    """Returns one vector fewer than asked for."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [[1.0, 0.0] for _ in texts[1:]]

    def embed_query(self, text: str) -> list[float]:
        return [1.0, 0.0]


@pytest.fixture()
def pipeline(settings, store, vector_store, embeddings) -> IngestionPipeline:
    return IngestionPipeline(settings, store, vector_store, embeddings)


class TestIngest:
    @pytest.mark.asyncio
    async def test_stores_document_chunks_and_vectors(
        self, pipeline: IngestionPipeline, store, vector_store, embeddings
    ) -> None:
        result = await pipeline.ingest(_upload(), title="K8s notes")

        assert result.chunk_count == 1
        document = await store.get_document(result.document_id)
        assert document.title == "K8s notes"
        assert document.source_type == "upload"

        chunks = await store.list_chunks(result.document_id)
        assert [c.content for c in chunks] == [NOTES]
        assert chunks[0].chunk_metadata == {
            "chunk_index": 0,
            "title": "K8s notes",
            "file_name": "notes.md",
            "file_type": "text/markdown",
        }
        assert chunks[0].embedding == embeddings.vector(NOTES)

        assert set(vector_store.chunks) == {c.id for c in chunks}
        assert vector_store.chunks[chunks[0].id].document_id == result.document_id

    @pytest.mark.asyncio
    async def test_embeds_all_chunks_in_one_batch(
        self, settings, store, vector_store, embeddings
    ) -> None:
        chunker = ParagraphChunker(ChunkOptions(chunk_size=60, overlap=10))
        pipeline = IngestionPipeline(settings, store, vector_store, embeddings, chunker=chunker)

        result = await pipeline.ingest(_upload(), title="notes")

        assert result.chunk_count == 3
        assert len(embeddings.document_calls) == 1
        chunks = await store.list_chunks(result.document_id)
        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert [c.content for c in chunks] == embeddings.document_calls[0]

    @pytest.mark.asyncio
    async def test_blank_title_defaults_to_untitled(self, pipeline, store) -> None:
        result = await pipeline.ingest(_upload(), title="   ")
        assert (await store.get_document(result.document_id)).title == "Untitled"

    @pytest.mark.asyncio
    async def test_file_too_large(self, pipeline, store, embeddings, settings) -> None:
        upload = _upload("x" * (settings.max_file_bytes + 1))
        with pytest.raises(FileTooLarge, match="Max"):
            await pipeline.ingest(upload, title="big")
        assert await store.count_documents() == 0
        assert embeddings.document_calls == []

    @pytest.mark.asyncio
    async def test_unsupported_type(self, pipeline, store) -> None:
        with pytest.raises(UnsupportedFileType):
            await pipeline.ingest(_upload(name="a.docx", mime="application/msword"), "x")
        assert await store.count_documents() == 0

    @pytest.mark.asyncio
    async def test_empty_file(self, pipeline, store) -> None:
        with pytest.raises(EmptyFile):
            await pipeline.ingest(_upload(" \n "), "x")
        assert await store.count_documents() == 0

    @pytest.mark.asyncio
    async def test_document_limit(self, pipeline, store, vector_store, settings) -> None:
        for i in range(settings.max_docs):
            await pipeline.ingest(_upload(), title=f"doc {i}")
        chunks_before = len(vector_store.chunks)

        with pytest.raises(DocumentLimitReached, match=str(settings.max_docs)):
            await pipeline.ingest(_upload(), title="one too many")

        assert await store.count_documents() == settings.max_docs
        assert len(vector_store.chunks) == chunks_before

    @pytest.mark.asyncio
    async def test_no_chunks_discards_document(self, settings, store, vector_store, embeddings) -> None:
        chunker = ParagraphChunker(ChunkOptions(min_chunk_size=500))
        pipeline = IngestionPipeline(settings, store, vector_store, embeddings, chunker=chunker)

        with pytest.raises(NoChunksProduced):
            await pipeline.ingest(_upload("short"), title="short")
        assert await store.count_documents() == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_discards_document(self, settings, store, vector_store) -> None:
        pipeline = IngestionPipeline(settings, store, vector_store, ExplodingEmbeddings())

        with pytest.raises(DependencyError, match="embedding service failed: quota exceeded"):
            await pipeline.ingest(_upload(), title="notes")
        assert await store.count_documents() == 0

    @pytest.mark.asyncio
    async def test_vector_count_mismatch(self, settings, store, vector_store) -> None:
        pipeline = IngestionPipeline(settings, store, vector_store, ShortEmbeddings())

        with pytest.raises(DependencyError, match="0 vectors for 1 chunks"):
            await pipeline.ingest(_upload(), title="notes")
        assert await store.count_documents() == 0

    @pytest.mark.asyncio
    async def test_vector_store_failure_discards_chunks(
        self, pipeline, store, vector_store, monkeypatch
    ) -> None:
        def broken(chunks):
            raise ConnectionError("chroma unreachable")

        monkeypatch.setattr(vector_store, "add_chunks", broken)

        with pytest.raises(DependencyError, match="vector store failed: chroma unreachable"):
            await pipeline.ingest(_upload(), title="notes")
        assert await store.count_documents() == 0

    @pytest.mark.asyncio
    async def test_cleanup_failure_keeps_original_error(
        self, pipeline, store, vector_store, monkeypatch, caplog
    ) -> None:
        def broken_add(chunks):
            raise ConnectionError("chroma unreachable")

        def broken_delete(document_id):
            raise ConnectionError("delete refused")

        monkeypatch.setattr(vector_store, "add_chunks", broken_add)
        monkeypatch.setattr(vector_store, "delete_document", broken_delete)

        with pytest.raises(DependencyError, match="chroma unreachable") as exc_info:
            await pipeline.ingest(_upload(name="a.txt", mime="text/plain"), title="notes")

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert await store.count_documents() == 0
        assert "Could not remove vectors" in caplog.text

    @pytest.mark.asyncio
    async def test_store_cleanup_failure_keeps_original_error(
        self, settings, store, vector_store, monkeypatch
    ) -> None:
        pipeline = IngestionPipeline(settings, store, vector_store, ExplodingEmbeddings())

        async def broken_delete(document_id):
            raise DependencyError("document store", "delete document: disk I/O error")

        monkeypatch.setattr(store, "delete_document", broken_delete)

        with pytest.raises(DependencyError, match="embedding service failed: quota exceeded"):
            await pipeline.ingest(_upload(), title="notes")


class TestRemove:
    @pytest.mark.asyncio
    async def test_removes_chunks_vectors_and_logs(self, pipeline, store, vector_store) -> None:
        doomed = await pipeline.ingest(_upload(), title="doomed")
        kept = await pipeline.ingest(_upload("Other text about databases."), title="kept")
        await store.add_query_log(
            "q", "a", [{"document_id": doomed.document_id, "chunk_id": "c"}], latency_ms=1
        )

        await pipeline.remove(doomed.document_id)

        assert await store.get_document(doomed.document_id) is None
        assert await store.list_chunks(doomed.document_id) == []
        assert all(c.document_id == kept.document_id for c in vector_store.chunks.values())
        assert await store.list_query_logs() == []
        assert [d.id for d in await pipeline.list_documents()] == [kept.document_id]

    @pytest.mark.asyncio
    async def test_unknown_document(self, pipeline) -> None:
        with pytest.raises(DocumentNotFound):
            await pipeline.remove("does-not-exist")

    @pytest.mark.asyncio
    async def test_vector_failure_keeps_document(
        self, pipeline, store, vector_store, monkeypatch
    ) -> None:
        result = await pipeline.ingest(_upload(), title="notes")

        def broken(document_id):
            raise ConnectionError("chroma unreachable")

        monkeypatch.setattr(vector_store, "delete_document", broken)

        with pytest.raises(DependencyError, match="vector store failed"):
            await pipeline.remove(result.document_id)

        assert await store.get_document(result.document_id) is not None
        assert len(await store.list_chunks(result.document_id)) == 1

        monkeypatch.undo()
        await pipeline.remove(result.document_id)
        assert await store.get_document(result.document_id) is None
        assert vector_store.chunks == {}
