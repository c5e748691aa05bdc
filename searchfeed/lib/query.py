"""Search request URL construction.

Builds the recent-search URL for one tick. The pagination parameter is
either a start_time derived from the backfill window (no cursor yet) or a
since_id taken from the cursor.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence, Union
from urllib.parse import quote_plus

__all__ = [
    "SEARCH_URL",
    "MAX_RESULTS",
    "START_TIME_FORMAT",
    "build_search_url",
    "format_start_time",
]

SEARCH_URL = "https://api.twitter.com/2/tweets/search/recent"
MAX_RESULTS = 100
START_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

NowSource = Union[datetime, Callable[[], datetime]]


def _resolve_now(now: Optional[NowSource]) -> datetime:
    if now is None:
        value = datetime.now(timezone.utc)
    elif callable(now):
        value = now()
    else:
        value = now

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_start_time(now: datetime, backfill: timedelta) -> str:
    """Format (now - backfill) as a UTC timestamp with second precision."""
    start = now - backfill
    if start.tzinfo is not None:
        start = start.astimezone(timezone.utc)
    return start.strftime(START_TIME_FORMAT)


def build_search_url(
    query: str,
    fields: Sequence[str],
    backfill: timedelta,
    cursor: Optional[str],
    *,
    now: Optional[NowSource] = None,
    base_url: str = SEARCH_URL,
) -> str:
    """Build the search URL for a single request.

    Args:
        query: Search expression, passed through as-is
        fields: Extra tweet fields to request (may be empty)
        backfill: How far back to search when there is no cursor
        cursor: Id of the newest record already seen, or None/""
        now: Current time, or a callable returning it (defaults to UTC now)
        base_url: Search endpoint

    Returns:
        Full request URL

    Example:
        >>> build_search_url("hello world", ["created_at"], timedelta(minutes=5), "42")
        'https://api.twitter.com/2/tweets/search/recent?max_results=100&query=hello+world&tweet.fields=created_at&since_id=42'
    """
    url = f"{base_url}?max_results={MAX_RESULTS}&query={quote_plus(query)}"

    if fields:
        url += "&tweet.fields=" + quote_plus(",".join(fields))

    if cursor:
        return url + "&since_id=" + cursor

    start_time = format_start_time(_resolve_now(now), backfill)
    return url + "&start_time=" + quote_plus(start_time)
