"""
Answering — grounded answer synthesis over retrieved document chunks.

Public API
----------
- :class:`AnswerPipeline` — embed, retrieve, prompt, complete, log.
- :class:`AnswerResult` — answer text with its :class:`SourceRef` list.
- :func:`build_grounded_prompt` — the system + user messages sent to the LLM.
- :func:`get_llm` — configured chat model.
"""

from grounded_qa.answering.llm import get_llm
from grounded_qa.answering.pipeline import (
    EMPTY_COMPLETION_ANSWER,
    NO_MATCH_ANSWER,
    AnswerPipeline,
    AnswerResult,
)
from grounded_qa.answering.prompts import build_grounded_prompt

__all__ = [
    "EMPTY_COMPLETION_ANSWER",
    "NO_MATCH_ANSWER",
    "AnswerPipeline",
    "AnswerResult",
    "build_grounded_prompt",
    "get_llm",
]
