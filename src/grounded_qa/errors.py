"""Error taxonomy shared by the pipelines and the HTTP layer.

Every failure a caller can observe is a :class:`GroundedQAError` subclass.
The ``kind`` attribute groups them into four families:

* ``validation_error`` – the request itself is malformed.
* ``limit_exceeded`` – a configured ceiling (file size, document count) was hit.
* ``extraction_failure`` – the upload could not be turned into usable text.
* ``dependency_failure`` – an external collaborator (embedding, search,
  completion, document store) failed or timed out.

``status_code`` is the HTTP status the serving layer responds with.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class GroundedQAError(Exception):
    """Base class for all structured failures."""

    kind: str = "error"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ── validation_error ──────────────────────────────────────────────────


class InvalidInputError(GroundedQAError):
    kind = "validation_error"
    status_code = 400


class InvalidQuestion(InvalidInputError):
    pass


class MissingFile(InvalidInputError):
    pass


class DocumentNotFound(InvalidInputError):
    status_code = 404


# ── limit_exceeded ────────────────────────────────────────────────────


class LimitExceededError(GroundedQAError):
    kind = "limit_exceeded"
    status_code = 400


class FileTooLarge(LimitExceededError):
    status_code = 413


class DocumentLimitReached(LimitExceededError):
    status_code = 429


# ── extraction_failure ────────────────────────────────────────────────


class ExtractionError(GroundedQAError):
    kind = "extraction_failure"
    status_code = 400


class UnsupportedFileType(ExtractionError):
    pass


class EmptyFile(ExtractionError):
    pass


class NoExtractableText(ExtractionError):
    pass


class UnreadablePdf(ExtractionError):
    pass


class NoChunksProduced(ExtractionError):
    status_code = 422


# ── dependency_failure ────────────────────────────────────────────────


class DependencyError(GroundedQAError):
    """An external collaborator failed; the message names which one."""

    kind = "dependency_failure"
    status_code = 502

    def __init__(self, dependency: str, message: str) -> None:
        super().__init__(f"{dependency} failed: {message}")
        self.dependency = dependency


async def guard_dependency(dependency: str, call: Awaitable[T], timeout: float | None) -> T:
    """Await *call* with a timeout, surfacing any failure as :class:`DependencyError`.

    Structured errors raised inside *call* pass through unchanged.  Nothing is
    retried.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except GroundedQAError:
        raise
    except asyncio.TimeoutError as exc:
        raise DependencyError(dependency, f"timed out after {timeout}s") from exc
    except Exception as exc:
        raise DependencyError(dependency, str(exc) or type(exc).__name__) from exc
