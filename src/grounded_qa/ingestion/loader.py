"""Upload loading — classify an uploaded file and extract its plain text."""

from __future__ import annotations

import enum
import io
import logging

from pydantic import BaseModel
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from grounded_qa.errors import EmptyFile, NoExtractableText, UnreadablePdf, UnsupportedFileType

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
TEXT_MIME_TYPES = frozenset({"text/plain", "text/markdown"})
TEXT_EXTENSIONS = (".txt", ".md")


class FileKind(str, enum.Enum):
    PDF = "pdf"
    TEXT = "text"


class UploadedFile(BaseModel):
    """An uploaded file as received from the client."""

    name: str = ""
    mime_type: str = ""
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def classify_upload(upload: UploadedFile) -> FileKind:
    """Decide whether *upload* is a PDF or a plain-text file.

    A file counts as PDF when its declared MIME type, its extension or its
    first five bytes say so; PDF takes precedence over text.

    Raises
    ------
    UnsupportedFileType
        For anything that is neither.
    """
    name = upload.name.lower()
    mime = upload.mime_type.lower()

    if mime == "application/pdf" or name.endswith(".pdf") or upload.data.startswith(PDF_MAGIC):
        return FileKind.PDF
    if mime in TEXT_MIME_TYPES or name.endswith(TEXT_EXTENSIONS):
        return FileKind.TEXT
    raise UnsupportedFileType("Only .txt, .md, or .pdf files are allowed.")


def extract_pdf_text(data: bytes) -> str:
    """Return the concatenated text of every page of a PDF."""
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except PyPdfError as exc:
        raise UnreadablePdf(f"Could not read PDF: {exc}") from exc
    return "\n\n".join(pages).strip()


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").lstrip("\ufeff").strip()


def extract_text(upload: UploadedFile) -> str:
    """Classify *upload* and return its non-empty plain text.

    Raises
    ------
    UnsupportedFileType, NoExtractableText, UnreadablePdf, EmptyFile
    """
    kind = classify_upload(upload)
    if kind is FileKind.PDF:
        text = extract_pdf_text(upload.data)
        if not text:
            raise NoExtractableText(
                "PDF has no extractable text (maybe scanned images). "
                "Please upload a text-based PDF or use OCR."
            )
    else:
        text = decode_text(upload.data)
        if not text:
            raise EmptyFile("Empty file")

    logger.debug("Extracted %d chars from %r (%s)", len(text), upload.name, kind.value)
    return text
