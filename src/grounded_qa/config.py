"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file.

    Pipelines receive an instance explicitly; only the serving layer calls
    :func:`get_settings`.
    """

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("llm_model_name", "openai_chat_model"),
        description="Chat/completion model identifier",
    )
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible API. Leave empty to use OpenAI cloud."
        ),
    )
    llm_temperature: float = 0.2

    # Embedding
    embedding_provider: Literal["openai", "huggingface"] = "openai"
    embedding_model: str = Field(
        default="text-embedding-3-small",
        validation_alias=AliasChoices("embedding_model", "openai_embed_model"),
    )

    # Applied to every embedding / search / completion call.
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # Document store
    database_url: str = "sqlite+aiosqlite:///./grounded_qa.db"
    database_echo: bool = False

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "document_chunks"
    chroma_persist_directory: str = Field(
        default="",
        description="When set, use an embedded persistent Chroma client instead of the HTTP one.",
    )

    # Upload limits
    max_file_bytes: int = Field(default=2 * 1024 * 1024, gt=0)
    max_docs: int = Field(default=20, ge=0)

    # Chunking
    chunk_size: int = Field(default=800, gt=0)
    chunk_overlap: int = Field(default=120, ge=0)
    min_chunk_size: int = Field(default=0, ge=0)
    max_chunks: int | None = 200

    # Retrieval
    retrieval_k: int = Field(default=10, gt=0)
    similarity_threshold: float = 0.0
    snippet_chars: int = Field(default=1500, gt=0)

    query_log_limit: int = 50
    log_level: str = "INFO"

    # Serving
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, parsed once."""
    return Settings()
