"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** (vLLM, Ollama, …) — set ``LLM_BASE_URL``.
   ``ChatOpenAI`` works unchanged against any ``/v1/chat/completions`` API.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from grounded_qa.config import Settings

logger = logging.getLogger(__name__)


def get_llm(settings: Settings, temperature: float | None = None) -> ChatOpenAI:
    """Return the configured chat model.

    The client never retries and gives up after
    ``settings.request_timeout_seconds``.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature if temperature is None else temperature,
        "timeout": settings.request_timeout_seconds,
        "max_retries": 0,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # Local servers don't need a real key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)
