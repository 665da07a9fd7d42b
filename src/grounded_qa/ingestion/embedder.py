"""Embedding function factory."""

from __future__ import annotations

import logging

from langchain_core.embeddings import Embeddings
from langchain_openai import OpenAIEmbeddings

from grounded_qa.config import Settings

logger = logging.getLogger(__name__)


def get_embedding_function(settings: Settings) -> Embeddings:
    """Return the configured embedding model.

    ``embedding_provider="openai"`` talks to the OpenAI embeddings API (or any
    compatible endpoint at ``llm_base_url``); ``"huggingface"`` runs a local
    sentence-transformer.  Clients never retry; the request timeout is taken
    from ``settings.request_timeout_seconds``.
    """
    if settings.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        logger.info("Using local sentence-transformer embeddings: %s", settings.embedding_model)
        return HuggingFaceEmbeddings(model_name=settings.embedding_model)

    kwargs: dict = {
        "model": settings.embedding_model,
        "api_key": settings.openai_api_key or "EMPTY",
        "timeout": settings.request_timeout_seconds,
        "max_retries": 0,
    }
    if settings.llm_base_url:
        kwargs["base_url"] = settings.llm_base_url
    return OpenAIEmbeddings(**kwargs)
