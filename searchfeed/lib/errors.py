"""Structured exception hierarchy for search sources.

Provides specific exception types for the failure modes of a polling
search source, with rich context for debugging and troubleshooting.

Only ConfigurationError is fatal. Transport and cache write failures are
reported and the poller carries on with the next tick. A missing cache key
is normal control flow on a fresh deployment.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

__all__ = [
    "SearchFeedError",
    "ConfigurationError",
    "TransportError",
    "TokenError",
    "CacheError",
    "CacheKeyNotFound",
]


class SearchFeedError(Exception):
    """Base exception for all search feed errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.source = source
        self.details = details or {}
        self.suggestion = suggestion

        parts = [message]

        if source:
            parts.insert(0, f"[{source}]")

        if details:
            detail_lines = [f"  {k}: {v}" for k, v in details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source": self.source,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ConfigurationError(SearchFeedError):
    """Error in source configuration.

    Raised at startup when configuration is invalid or incomplete. A source
    with an invalid configuration never runs.
    """

    def __init__(
        self,
        message: str,
        *,
        issues: Optional[List[str]] = None,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.issues = issues or []
        self.field = field
        self.value = value

        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        if issues:
            issue_lines = "\n".join(f"  - {issue}" for issue in issues)
            message = f"{message}\n\nIssues found:\n{issue_lines}"

        super().__init__(message, details=details, **kwargs)


class TransportError(SearchFeedError):
    """HTTP or network failure while talking to the search API.

    The message carries the response body when one was received, since the
    upstream API describes request problems (such as a stale since_id) there.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.status_code = status_code
        self.url = url
        self.cause = cause

        details = kwargs.pop("details", {})
        if status_code is not None:
            details["status_code"] = status_code
        if cause:
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class TokenError(TransportError):
    """OAuth2 token could not be obtained from the token endpoint."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                "Check api_key and api_secret. Verify environment variables are set."
            )
        super().__init__(message, suggestion=suggestion, **kwargs)


class CacheError(SearchFeedError):
    """Error reading from or writing to a cache resource."""

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.key = key
        self.cause = cause

        details = kwargs.pop("details", {})
        if key is not None:
            details["key"] = key
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class CacheKeyNotFound(CacheError):
    """Key does not exist in the cache."""

    def __init__(self, key: str, **kwargs: Any) -> None:
        super().__init__(f"Key not found: {key}", key=key, **kwargs)
