"""Classification of search responses.

Every fetch ends in exactly one of four classifications:

    DataBatch      - the response carried one or more records
    EmptyBatch     - the request succeeded but there was nothing new
    InvalidCursor  - the API rejected since_id as too old; the cursor must
                     be reset. This is expected and self-healing, not a failure.
    FetchFailed    - anything else that went wrong

InvalidCursor is deliberately not a subclass or flavour of FetchFailed so
that it never reaches error reporting.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

__all__ = [
    "FetchOutcome",
    "DataBatch",
    "EmptyBatch",
    "InvalidCursor",
    "FetchFailed",
    "Classification",
    "INVALID_CURSOR_PHRASE",
    "is_invalid_cursor_error",
    "classify",
]

Record = Dict[str, Any]

# Upstream wording for a since_id that is outside the searchable window. The
# provider does not document this text as stable.
INVALID_CURSOR_PHRASE = "'since_id' must be a tweet id created after"


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one fetch: a response body or an error message."""

    body: Optional[bytes] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, body: bytes, status_code: int = 200) -> "FetchOutcome":
        return cls(body=body, status_code=status_code)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> "FetchOutcome":
        return cls(error=error, status_code=status_code)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DataBatch:
    records: List[Record]
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EmptyBatch:
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InvalidCursor:
    message: str


@dataclass(frozen=True)
class FetchFailed:
    message: str
    status_code: Optional[int] = None


Classification = Union[DataBatch, EmptyBatch, InvalidCursor, FetchFailed]


def is_invalid_cursor_error(message: Optional[str]) -> bool:
    """Return True if an error message reports an out-of-range since_id."""
    if not message:
        return False
    return INVALID_CURSOR_PHRASE in message


def _describe_upstream_errors(errors: List[Any]) -> str:
    parts = []
    for error in errors:
        if isinstance(error, dict):
            parts.append(
                str(error.get("message") or error.get("detail") or error.get("title") or error)
            )
        else:
            parts.append(str(error))
    return "; ".join(parts)


def classify(outcome: FetchOutcome) -> Classification:
    """Decide what a fetch outcome means for the current tick."""
    if not outcome.ok:
        if is_invalid_cursor_error(outcome.error):
            return InvalidCursor(outcome.error or "")
        return FetchFailed(outcome.error or "unknown error", outcome.status_code)

    try:
        payload = json.loads(outcome.body or b"null")
    except ValueError as exc:
        return FetchFailed(f"Failed to parse search response: {exc}", outcome.status_code)

    if not isinstance(payload, dict):
        return FetchFailed(
            f"Unexpected search response type: {type(payload).__name__}",
            outcome.status_code,
        )

    meta = payload.get("meta") or {}
    if not isinstance(meta, dict):
        meta = {}

    data = payload.get("data")
    if isinstance(data, list) and data:
        return DataBatch(records=data, meta=meta)

    errors = payload.get("errors")
    if data is None and isinstance(errors, list) and errors:
        message = _describe_upstream_errors(errors)
        if is_invalid_cursor_error(message):
            return InvalidCursor(message)
        return FetchFailed(f"Search API returned errors: {message}", outcome.status_code)

    if data is not None and not isinstance(data, list):
        logger.warning("Ignoring non-array 'data' in search response")

    return EmptyBatch(meta=meta)
