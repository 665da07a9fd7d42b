"""Prompt templates for grounded answer synthesis."""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from grounded_qa.retrieval.models import SourceRef

GROUNDED_ANSWER_SYSTEM = (
    "Answer ONLY using the provided sources. "
    "If not in sources, say you cannot find it in the documents. "
    "End with 'Sources: Source 1, Source 2...' based on what you used."
)


def build_grounded_prompt(question: str, sources: list[SourceRef]) -> list[BaseMessage]:
    """Assemble the system + user messages for one grounded answer.

    Sources are numbered from 1 in retrieval order, so ``Source N`` in the
    model's reply refers to ``sources[N - 1]``.
    """
    return [
        SystemMessage(content=GROUNDED_ANSWER_SYSTEM),
        HumanMessage(content=f"Question: {question}\n\n{format_sources(sources)}"),
    ]


def format_sources(sources: list[SourceRef]) -> str:
    return "\n".join(
        f"Source {i}:\n{source.snippet}\n" for i, source in enumerate(sources, 1)
    )
