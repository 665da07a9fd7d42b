"""
Storage — relational persistence for documents, chunks and query logs.

Public surface
--------------
- :class:`DocumentStore` — async repository used by both pipelines.
- :class:`NewChunk` — input record for :meth:`DocumentStore.add_chunks`.
- :func:`create_engine`, :func:`create_session_factory`, :func:`init_models`.
"""

from grounded_qa.storage.database import create_engine, create_session_factory, init_models
from grounded_qa.storage.models import ChunkRow, DocumentRow, QueryLogRow
from grounded_qa.storage.repository import DocumentStore, NewChunk

__all__ = [
    "ChunkRow",
    "DocumentRow",
    "DocumentStore",
    "NewChunk",
    "QueryLogRow",
    "create_engine",
    "create_session_factory",
    "init_models",
]
