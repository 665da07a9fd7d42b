"""Document store — async persistence for documents, chunks and query logs.

Every public method runs in its own transaction.  Database failures are
raised as :class:`~grounded_qa.errors.DependencyError` so callers only ever
see the structured error taxonomy.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import DateTime, String, delete, func, insert, literal, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grounded_qa.errors import DependencyError
from grounded_qa.storage.models import (
    ChunkRow,
    DocumentRow,
    QueryLogDocumentRow,
    QueryLogRow,
    utcnow,
)

logger = logging.getLogger(__name__)


class NewChunk(BaseModel):
    """A chunk ready to be persisted."""

    chunk_index: int
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float]


class DocumentStore:
    """Repository over the ``documents``, ``chunks`` and ``query_logs`` tables.

    Parameters
    ----------
    session_factory:
        Factory producing :class:`AsyncSession` objects bound to the store's
        engine.
    """

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            raise DependencyError("document store", f"{operation}: {exc}") from exc

    # -- documents ------------------------------------------------------------

    async def count_documents(self) -> int:
        async with self._transaction("count documents") as session:
            result = await session.execute(select(func.count()).select_from(DocumentRow))
            return int(result.scalar_one())

    async def reserve_document(
        self,
        title: str,
        source_type: str,
        max_docs: int,
    ) -> DocumentRow | None:
        """Insert a document only while fewer than *max_docs* exist.

        The count check and the insert are one ``INSERT ... SELECT ... WHERE``
        statement.  SQLite serialises writers, which is enough to stop two
        concurrent uploads from both taking the last slot; other backends run
        the statement under ``SERIALIZABLE`` and the loser of a conflict gets a
        :class:`~grounded_qa.errors.DependencyError` instead of an extra row.

        Returns
        -------
        DocumentRow | None
            The new document, or ``None`` when the ceiling is reached.
        """
        document_id = str(uuid.uuid4())
        below_limit = select(func.count()).select_from(DocumentRow).scalar_subquery() < max_docs
        row = select(
            literal(document_id, String),
            literal(title, String),
            literal(source_type, String),
            literal(utcnow(), DateTime(timezone=True)),
        ).where(below_limit)
        stmt = insert(DocumentRow).from_select(["id", "title", "source_type", "created_at"], row)

        async with self._transaction("reserve document") as session:
            if session.bind.dialect.name != "sqlite":
                await session.connection(execution_options={"isolation_level": "SERIALIZABLE"})
            await session.execute(stmt)
            document = await session.get(DocumentRow, document_id)

        if document is None:
            logger.info("Document ceiling (%d) reached; %r not stored", max_docs, title)
        return document

    async def get_document(self, document_id: str) -> DocumentRow | None:
        async with self._transaction("get document") as session:
            return await session.get(DocumentRow, document_id)

    async def list_documents(self) -> Sequence[DocumentRow]:
        stmt = select(DocumentRow).order_by(DocumentRow.created_at.desc())
        async with self._transaction("list documents") as session:
            return (await session.execute(stmt)).scalars().all()

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document, its chunks and every query log citing it.

        Returns ``False`` when no such document exists.
        """
        async with self._transaction("delete document") as session:
            if await session.get(DocumentRow, document_id) is None:
                return False

            log_ids = (
                await session.execute(
                    select(QueryLogDocumentRow.query_log_id).where(
                        QueryLogDocumentRow.document_id == document_id
                    )
                )
            ).scalars().all()
            if log_ids:
                await session.execute(
                    delete(QueryLogDocumentRow).where(QueryLogDocumentRow.query_log_id.in_(log_ids))
                )
                await session.execute(delete(QueryLogRow).where(QueryLogRow.id.in_(log_ids)))

            await session.execute(delete(ChunkRow).where(ChunkRow.document_id == document_id))
            await session.execute(delete(DocumentRow).where(DocumentRow.id == document_id))

        logger.info("Deleted document %s and %d query log(s)", document_id, len(log_ids))
        return True

    # -- chunks ---------------------------------------------------------------

    async def add_chunks(self, document_id: str, chunks: list[NewChunk]) -> list[ChunkRow]:
        """Persist *chunks* for *document_id* in a single transaction."""
        rows = [
            ChunkRow(
                id=str(uuid.uuid4()),
                document_id=document_id,
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                chunk_metadata=chunk.metadata,
                embedding=chunk.embedding,
            )
            for chunk in chunks
        ]
        async with self._transaction("insert chunks") as session:
            session.add_all(rows)
        return rows

    async def list_chunks(self, document_id: str) -> Sequence[ChunkRow]:
        stmt = (
            select(ChunkRow)
            .where(ChunkRow.document_id == document_id)
            .order_by(ChunkRow.chunk_index)
        )
        async with self._transaction("list chunks") as session:
            return (await session.execute(stmt)).scalars().all()

    # -- query logs -----------------------------------------------------------

    async def add_query_log(
        self,
        question: str,
        answer: str,
        top_sources: list[dict[str, Any]],
        latency_ms: int,
    ) -> QueryLogRow:
        log = QueryLogRow(
            id=str(uuid.uuid4()),
            question=question,
            answer=answer,
            top_sources=top_sources,
            latency_ms=latency_ms,
            created_at=utcnow(),
        )
        document_ids = {s["document_id"] for s in top_sources if s.get("document_id")}
        async with self._transaction("insert query log") as session:
            session.add(log)
            await session.flush()
            session.add_all(
                QueryLogDocumentRow(query_log_id=log.id, document_id=doc_id)
                for doc_id in sorted(document_ids)
            )
        return log

    async def list_query_logs(self, limit: int = 50) -> Sequence[QueryLogRow]:
        stmt = select(QueryLogRow).order_by(QueryLogRow.created_at.desc()).limit(limit)
        async with self._transaction("list query logs") as session:
            return (await session.execute(stmt)).scalars().all()
