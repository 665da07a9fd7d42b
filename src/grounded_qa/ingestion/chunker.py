"""Paragraph-aware text chunking with fixed-window fallback for long blocks."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from langchain_text_splitters import TextSplitter
from pydantic import BaseModel, Field, model_validator

if TYPE_CHECKING:
    from langchain_core.documents import Document

    from grounded_qa.config import Settings

_BLANK_LINES = re.compile(r"\n{2,}")
_BLOCK_SEPARATOR = "\n\n"


class ChunkOptions(BaseModel):
    """Chunking parameters.

    Attributes
    ----------
    chunk_size:
        Maximum number of characters per chunk.
    overlap:
        Characters repeated between consecutive windows of an oversized
        block (and, with ``stitch_overlap``, between consecutive chunks).
    min_chunk_size:
        Chunks whose stripped length is below this are dropped.  ``0`` keeps
        every non-empty chunk.
    max_chunks:
        Upper bound on the number of chunks returned, ``None`` for no cap.
    stitch_overlap:
        Prefix every chunk but the first with the tail of its predecessor.
        Stitched chunks can exceed ``chunk_size`` by ``overlap + 2``.
    """

    chunk_size: int = Field(default=800, gt=0)
    overlap: int = Field(default=120, ge=0)
    min_chunk_size: int = Field(default=0, ge=0)
    max_chunks: int | None = Field(default=200, gt=0)
    stitch_overlap: bool = False

    @model_validator(mode="after")
    def _check_overlap(self) -> ChunkOptions:
        if self.overlap >= self.chunk_size:
            raise ValueError(
                f"overlap ({self.overlap}) must be < chunk_size ({self.chunk_size})"
            )
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> ChunkOptions:
        return cls(
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            min_chunk_size=settings.min_chunk_size,
            max_chunks=settings.max_chunks,
        )


class ParagraphChunker(TextSplitter):
    """Greedy paragraph packer exposed through LangChain's splitter protocol.

    Blocks separated by blank lines are packed into chunks of at most
    ``chunk_size`` characters.  A block that is longer than ``chunk_size`` on
    its own is cut into overlapping fixed-size windows.  The output depends
    only on the input text and the options.
    """

    def __init__(self, options: ChunkOptions | None = None, **kwargs: Any) -> None:
        self.options = options or ChunkOptions()
        super().__init__(
            chunk_size=self.options.chunk_size,
            chunk_overlap=self.options.overlap,
            strip_whitespace=False,
            **kwargs,
        )

    def split_text(self, text: str) -> list[str]:
        opts = self.options
        clean = text.replace("\r\n", "\n").replace("\r", "\n").strip()
        if not clean:
            return []

        blocks = [b.strip() for b in _BLANK_LINES.split(clean)]
        chunks: list[str] = []
        buffer = ""

        for block in blocks:
            if not block:
                continue

            if len(block) > opts.chunk_size:
                self._emit(chunks, buffer)
                buffer = ""
                for window in self._windows(block):
                    self._emit(chunks, window)
                continue

            candidate = f"{buffer}{_BLOCK_SEPARATOR}{block}" if buffer else block
            if len(candidate) <= opts.chunk_size:
                buffer = candidate
            else:
                self._emit(chunks, buffer)
                buffer = block

        self._emit(chunks, buffer)

        if opts.stitch_overlap and opts.overlap > 0 and len(chunks) > 1:
            chunks = self._stitch(chunks)

        if opts.max_chunks is not None:
            chunks = chunks[: opts.max_chunks]
        return chunks

    # -- internals ------------------------------------------------------------

    def _emit(self, chunks: list[str], chunk: str) -> None:
        stripped = chunk.strip()
        if stripped and len(stripped) >= self.options.min_chunk_size:
            chunks.append(chunk)

    def _windows(self, block: str) -> list[str]:
        size = self.options.chunk_size
        step = max(1, size - self.options.overlap)
        windows: list[str] = []
        start = 0
        while True:
            end = min(start + size, len(block))
            windows.append(block[start:end])
            if end == len(block):
                return windows
            start += step

    def _stitch(self, chunks: list[str]) -> list[str]:
        overlap = self.options.overlap
        stitched = [chunks[0]]
        for previous, current in zip(chunks, chunks[1:]):
            tail = previous[-overlap:]
            stitched.append(f"{tail}{_BLOCK_SEPARATOR}{current}".strip())
        return stitched


def chunk_text(text: str, options: ChunkOptions | None = None) -> list[str]:
    """Split *text* into ordered chunks.

    Parameters
    ----------
    text:
        Raw document text.  Line endings are normalised before splitting.
    options:
        Chunking parameters; defaults to :class:`ChunkOptions` defaults.

    Returns
    -------
    list[str]
        Chunks in document order.  Empty or whitespace-only input gives ``[]``.
    """
    return ParagraphChunker(options).split_text(text)


def chunk_documents(
    documents: list[Document],
    options: ChunkOptions | None = None,
) -> list[Document]:
    """Split *documents* into chunks, copying metadata and adding ``chunk_index``."""
    splitter = ParagraphChunker(options)
    chunked: list[Document] = []
    for document in documents:
        pieces = splitter.create_documents([document.page_content], metadatas=[document.metadata])
        for index, piece in enumerate(pieces):
            piece.metadata["chunk_index"] = index
            chunked.append(piece)
    return chunked
