"""Semantic retriever — similarity search mapped to validated citations.

Usage::

    from grounded_qa.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever(store, k=10)
    for ref in retriever.search_by_embedding(query_vector):
        print(ref.short_ref(), ref.snippet[:80])
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from grounded_qa.config import Settings
from grounded_qa.errors import DependencyError
from grounded_qa.retrieval.base import VectorStoreBase
from grounded_qa.retrieval.models import MatchRecord, SourceRef

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """High-level retriever that wraps any :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    k:
        Number of matches requested from the store.
    score_threshold:
        Minimum similarity; matches below this are discarded.
    snippet_chars:
        Maximum length of :attr:`SourceRef.snippet`.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        *,
        k: int = 10,
        score_threshold: float = 0.0,
        snippet_chars: int = 1500,
    ) -> None:
        self._store = store
        self.k = k
        self.score_threshold = score_threshold
        self.snippet_chars = snippet_chars

    @classmethod
    def from_settings(cls, store: VectorStoreBase, settings: Settings) -> SemanticRetriever:
        return cls(
            store,
            k=settings.retrieval_k,
            score_threshold=settings.similarity_threshold,
            snippet_chars=settings.snippet_chars,
        )

    # -- public API -----------------------------------------------------------

    def search_by_embedding(self, embedding: list[float]) -> list[SourceRef]:
        """Return citations for the chunks closest to *embedding*, best first."""
        raw_hits = self._store.similarity_search(
            embedding, k=self.k, threshold=self.score_threshold
        )
        return [self._to_source(match) for match in self._validate(raw_hits)]

    # -- internals ------------------------------------------------------------

    def _validate(self, raw_hits: list[dict[str, Any]]) -> list[MatchRecord]:
        matches: list[MatchRecord] = []
        for position, hit in enumerate(raw_hits):
            try:
                match = MatchRecord.model_validate(hit)
            except ValidationError as exc:
                raise DependencyError(
                    "similarity search", f"malformed match at position {position}: {exc}"
                ) from exc
            if match.similarity >= self.score_threshold:
                matches.append(match)
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[: self.k]

    def _to_source(self, match: MatchRecord) -> SourceRef:
        title = match.title or match.metadata.get("title") or "Untitled"
        return SourceRef(
            chunk_id=match.id,
            document_id=match.document_id,
            title=str(title),
            snippet=match.content[: self.snippet_chars],
            similarity=match.similarity,
        )
