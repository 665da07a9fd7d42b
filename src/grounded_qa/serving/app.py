"""FastAPI application exposing ingestion and grounded Q&A as a REST API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

from grounded_qa.answering import AnswerPipeline, get_llm
from grounded_qa.config import Settings, get_settings
from grounded_qa.errors import GroundedQAError, InvalidInputError, MissingFile
from grounded_qa.ingestion.embedder import get_embedding_function
from grounded_qa.ingestion.loader import UploadedFile
from grounded_qa.ingestion.pipeline import IngestionPipeline
from grounded_qa.retrieval import SemanticRetriever, VectorStoreBase
from grounded_qa.serving.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentCreatedResponse,
    DocumentListResponse,
    DocumentOut,
    ErrorResponse,
    IngestResponse,
    OkResponse,
    QueryLogListResponse,
    QueryLogOut,
)
from grounded_qa.storage import DocumentStore, create_engine, create_session_factory, init_models

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Install the root handler once; later calls only adjust the level."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(level.upper())


def create_app(
    settings: Settings | None = None,
    *,
    embeddings: Embeddings | None = None,
    vector_store: VectorStoreBase | None = None,
    llm: BaseChatModel | None = None,
) -> FastAPI:
    """Build the application.

    Collaborators left as ``None`` are created from *settings* at startup;
    tests pass fakes instead.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        engine = create_engine(settings)
        await init_models(engine)
        store = DocumentStore(create_session_factory(engine))

        emb = embeddings or get_embedding_function(settings)
        if vector_store is not None:
            vstore = vector_store
        else:
            from grounded_qa.retrieval.chroma_store import ChromaVectorStore

            vstore = ChromaVectorStore.from_settings(settings)

        app.state.ingestion = IngestionPipeline(settings, store, vstore, emb)
        app.state.answering = AnswerPipeline(
            settings,
            store,
            SemanticRetriever.from_settings(vstore, settings),
            emb,
            llm or get_llm(settings),
        )
        app.state.store = store
        logger.info("Started with database %s", engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title="Grounded Document Q&A API",
        version="0.1.0",
        description="Upload documents and ask questions answered only from them.",
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.exception_handler(GroundedQAError)
    async def _handle_error(request: Request, exc: GroundedQAError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message, kind=exc.kind).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def _handle_invalid_request(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        message = _describe_validation_error(exc)
        logger.warning("%s %s rejected: %s", request.method, request.url.path, message)
        return JSONResponse(
            status_code=InvalidInputError.status_code,
            content=ErrorResponse(error=message, kind=InvalidInputError.kind).model_dump(),
        )

    app.include_router(router)
    return app


# ── Dependencies ──────────────────────────────────────────────────────


def _describe_validation_error(exc: RequestValidationError) -> str:
    """Render the first validation error as ``field: message``."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{field}: {message}" if field else message


def _ingestion(request: Request) -> IngestionPipeline:
    return request.app.state.ingestion


def _answering(request: Request) -> AnswerPipeline:
    return request.app.state.answering


async def _read_upload(request: Request, file: UploadFile | None) -> UploadedFile:
    if file is None:
        raise MissingFile("Attach .txt, .md, or .pdf file")
    # One byte past the limit is enough to reject oversized uploads.
    limit = request.app.state.settings.max_file_bytes
    data = await file.read(limit + 1)
    return UploadedFile(
        name=file.filename or "",
        mime_type=file.content_type or "",
        data=data,
    )


# ── Routes ────────────────────────────────────────────────────────────

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.post("/api/ingest", response_model=IngestResponse)
async def ingest(
    request: Request,
    file: UploadFile | None = File(None),
    title: str = Form("Untitled"),
    pipeline: IngestionPipeline = Depends(_ingestion),
) -> IngestResponse:
    upload = await _read_upload(request, file)
    result = await pipeline.ingest(upload, title)
    return IngestResponse(document_id=result.document_id, chunks=result.chunk_count)


@router.get("/api/documents", response_model=DocumentListResponse)
async def list_documents(
    pipeline: IngestionPipeline = Depends(_ingestion),
) -> DocumentListResponse:
    documents = await pipeline.list_documents()
    return DocumentListResponse(
        documents=[DocumentOut.model_validate(d) for d in documents]
    )


@router.post("/api/documents", response_model=DocumentCreatedResponse)
async def upload_document(
    request: Request,
    file: UploadFile | None = File(None),
    pipeline: IngestionPipeline = Depends(_ingestion),
) -> DocumentCreatedResponse:
    """Upload a file using its file name as the document title."""
    upload = await _read_upload(request, file)
    result = await pipeline.ingest(upload, upload.name)
    document = await pipeline.store.get_document(result.document_id)
    return DocumentCreatedResponse(document=DocumentOut.model_validate(document))


@router.delete("/api/documents/{document_id}", response_model=OkResponse)
async def delete_document(
    document_id: str,
    pipeline: IngestionPipeline = Depends(_ingestion),
) -> OkResponse:
    await pipeline.remove(document_id)
    return OkResponse()


@router.post("/api/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    pipeline: AnswerPipeline = Depends(_answering),
) -> ChatResponse:
    result = await pipeline.answer(body.question)
    return ChatResponse(answer=result.answer, sources=result.sources)


@router.get("/api/logs", response_model=QueryLogListResponse)
async def list_logs(
    pipeline: AnswerPipeline = Depends(_answering),
) -> QueryLogListResponse:
    logs = await pipeline.recent_logs()
    return QueryLogListResponse(logs=[QueryLogOut.model_validate(log) for log in logs])


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
