"""Request / response schemas for the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from grounded_qa.retrieval.models import SourceRef


class ChatRequest(BaseModel):
    """Incoming question from the user."""

    question: str = Field(min_length=2)


class ChatResponse(BaseModel):
    """Grounded answer with the sources it was drawn from."""

    answer: str
    sources: list[SourceRef] = []


class IngestResponse(BaseModel):
    ok: bool = True
    document_id: str
    chunks: int


class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    source_type: str
    created_at: datetime


class DocumentCreatedResponse(BaseModel):
    ok: bool = True
    document: DocumentOut


class DocumentListResponse(BaseModel):
    documents: list[DocumentOut]


class QueryLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    question: str
    answer: str
    top_sources: list[dict[str, Any]]
    latency_ms: int
    created_at: datetime


class QueryLogListResponse(BaseModel):
    logs: list[QueryLogOut]


class OkResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    error: str
    kind: str
