"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import math
from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio
from langchain_core.embeddings import Embeddings

from grounded_qa.config import Settings
from grounded_qa.retrieval.base import VectorStoreBase
from grounded_qa.retrieval.models import IndexedChunk
from grounded_qa.storage import DocumentStore, create_engine, create_session_factory, init_models


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class LetterEmbeddings(Embeddings):
    """Deterministic 26-dim letter-frequency vectors.

    Texts sharing letters get similar vectors, which is enough to make
    similarity ranking observable in tests.
    """

    def __init__(self) -> None:
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    @staticmethod
    def vector(text: str) -> list[float]:
        counts = [0.0] * 26
        for ch in text.lower():
            if "a" <= ch <= "z":
                counts[ord(ch) - ord("a")] += 1.0
        return counts

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [self.vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self.vector(text)


def _cosine(a: list[float], b: list[float]) -> float:
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / norm


class InMemoryVectorStore(VectorStoreBase):
    """Brute-force cosine search over a dict."""

    def __init__(self) -> None:
        super().__init__("test-collection")
        self.chunks: dict[str, IndexedChunk] = {}

    def add_chunks(self, chunks: list[IndexedChunk]) -> None:
        for chunk in chunks:
            self.chunks[chunk.id] = chunk

    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 10,
        threshold: float = 0.0,
    ) -> list[dict[str, Any]]:
        scored = [
            (_cosine(query_embedding, chunk.embedding), chunk) for chunk in self.chunks.values()
        ]
        scored = [(s, c) for s, c in scored if s >= threshold]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [
            {
                "id": chunk.id,
                "document_id": chunk.document_id,
                "content": chunk.content,
                "metadata": dict(chunk.metadata),
                "similarity": score,
            }
            for score, chunk in scored[:k]
        ]

    def delete_document(self, document_id: str) -> None:
        self.chunks = {
            cid: c for cid, c in self.chunks.items() if c.document_id != document_id
        }

    def health_check(self) -> bool:
        return True


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        max_docs=3,
        max_file_bytes=64 * 1024,
        request_timeout_seconds=5.0,
    )


@pytest.fixture()
def embeddings() -> LetterEmbeddings:
    return LetterEmbeddings()


@pytest.fixture()
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest_asyncio.fixture()
async def store(settings: Settings) -> AsyncIterator[DocumentStore]:
    """Document store over a fresh in-memory SQLite database."""
    engine = create_engine(settings)
    await init_models(engine)
    yield DocumentStore(create_session_factory(engine))
    await engine.dispose()
