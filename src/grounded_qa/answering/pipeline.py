"""Retrieval & answer pipeline — one grounded answer per question.

Each call embeds the question, retrieves the closest chunks, asks the chat
model to answer strictly from them and appends a query log.  The log insert
is the only write; nothing is kept between calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from pydantic import BaseModel, Field

from grounded_qa.answering.prompts import build_grounded_prompt
from grounded_qa.config import Settings
from grounded_qa.errors import InvalidQuestion, guard_dependency
from grounded_qa.retrieval.models import SourceRef
from grounded_qa.retrieval.retriever import SemanticRetriever
from grounded_qa.storage.models import QueryLogRow
from grounded_qa.storage.repository import DocumentStore

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 2
NO_MATCH_ANSWER = (
    "I can't find that in the provided documents. "
    "Please upload relevant docs or ask a different question."
)
EMPTY_COMPLETION_ANSWER = "No answer"


class AnswerResult(BaseModel):
    answer: str
    sources: list[SourceRef] = Field(default_factory=list)


def _message_text(content: Any) -> str:
    """Flatten chat-model message content (string or content blocks) to text."""
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


class AnswerPipeline:
    """Answers questions from the indexed documents, with citations.

    Parameters
    ----------
    settings:
        Dependency timeout and retrieval parameters.
    store:
        Document store the query log is written to.
    retriever:
        Maps a question vector to ranked :class:`SourceRef` citations.
    embeddings:
        Embedding model; must be the one used at ingestion time.
    llm:
        Chat model used for answer synthesis.
    """

    def __init__(
        self,
        settings: Settings,
        store: DocumentStore,
        retriever: SemanticRetriever,
        embeddings: Embeddings,
        llm: BaseChatModel,
    ) -> None:
        self.settings = settings
        self.store = store
        self.retriever = retriever
        self.embeddings = embeddings
        self.llm = llm

    async def answer(self, question: str) -> AnswerResult:
        t0 = time.monotonic()
        question = question.strip()
        if len(question) < MIN_QUESTION_LENGTH:
            raise InvalidQuestion(
                f"Question must be at least {MIN_QUESTION_LENGTH} characters long."
            )

        timeout = self.settings.request_timeout_seconds
        query_vector = await guard_dependency(
            "embedding service", self.embeddings.aembed_query(question), timeout
        )
        sources = await guard_dependency(
            "similarity search",
            asyncio.to_thread(self.retriever.search_by_embedding, query_vector),
            timeout,
        )

        if sources:
            response = await guard_dependency(
                "completion service",
                self.llm.ainvoke(build_grounded_prompt(question, sources)),
                timeout,
            )
            answer = _message_text(response.content).strip() or EMPTY_COMPLETION_ANSWER
        else:
            answer = NO_MATCH_ANSWER

        latency_ms = int((time.monotonic() - t0) * 1000)
        await self.store.add_query_log(
            question=question,
            answer=answer,
            top_sources=[s.model_dump() for s in sources],
            latency_ms=latency_ms,
        )
        logger.info(
            "Answered with %d source(s) in %d ms: %s",
            len(sources),
            latency_ms,
            " ".join(s.short_ref() for s in sources) or "no match",
        )
        return AnswerResult(answer=answer, sources=sources)

    async def recent_logs(self, limit: int | None = None) -> Sequence[QueryLogRow]:
        return await self.store.list_query_logs(limit or self.settings.query_log_limit)
