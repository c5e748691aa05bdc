"""OAuth 2.0 client-credentials authentication for the search API.

The search API authenticates app-only requests with a bearer token obtained
from a token endpoint using the application's key and secret. This module
exchanges the credentials for a token, caches it, and builds request headers.

Credential values should use environment variable references (${VAR_NAME})
which are expanded when the configuration is loaded.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx

from searchfeed.lib.errors import TokenError

logger = logging.getLogger(__name__)

__all__ = [
    "TOKEN_URL",
    "ClientCredentials",
    "OAuth2TokenProvider",
    "build_auth_headers",
]

TOKEN_URL = "https://api.twitter.com/oauth2/token"

# Refresh a little before the advertised expiry
EXPIRY_SKEW_SECONDS = 30.0


@dataclass
class ClientCredentials:
    """Client key and secret for the client-credentials grant.

    Example:
        credentials = ClientCredentials(
            client_key="${TWITTER_API_KEY}",
            client_secret="${TWITTER_API_SECRET}",
        )
    """

    client_key: str
    client_secret: str
    token_url: str = TOKEN_URL

    def __post_init__(self) -> None:
        if not (self.client_key and self.client_secret):
            raise ValueError(
                "OAuth2 authentication requires both 'api_key' and 'api_secret'"
            )

    def __repr__(self) -> str:
        return (
            f"ClientCredentials(client_key='***', client_secret='***', "
            f"token_url='{self.token_url}')"
        )


class OAuth2TokenProvider:
    """Obtains and caches an access token using the client-credentials grant.

    Tokens are requested lazily on first use and reused until they expire or
    are invalidated (for example after the API answers 401).
    """

    def __init__(
        self,
        credentials: ClientCredentials,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.credentials = credentials
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: Optional[float] = None
        self._lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def _token_valid(self) -> bool:
        if self._token is None:
            return False
        if self._expires_at is None:
            return True
        return self._clock() < self._expires_at

    def get_token(self) -> str:
        """Return a valid access token, requesting a new one if needed.

        Raises:
            TokenError: If the token endpoint rejects the request or is unreachable
        """
        with self._lock:
            token = self._token
            if token is None or not self._token_valid():
                token, self._expires_at = self._request_token()
                self._token = token
            return token

    def invalidate(self) -> None:
        """Drop the cached token so the next request obtains a new one."""
        with self._lock:
            if self._token is not None:
                logger.info("Discarding cached OAuth2 access token")
            self._token = None
            self._expires_at = None

    def _request_token(self) -> tuple[str, Optional[float]]:
        url = self.credentials.token_url
        logger.debug("Requesting OAuth2 access token from %s", url)

        try:
            response = self._get_client().post(
                url,
                data={"grant_type": "client_credentials"},
                auth=(self.credentials.client_key, self.credentials.client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TokenError(
                f"Token request to {url} failed: {exc}", url=url, cause=exc
            ) from exc

        if response.status_code // 100 != 2:
            raise TokenError(
                f"Token request to {url} returned {response.status_code}: {response.text}",
                url=url,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenError(
                f"Token endpoint {url} returned invalid JSON", url=url, cause=exc
            ) from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise TokenError(f"Token endpoint {url} returned no access_token", url=url)

        expires_at: Optional[float] = None
        expires_in = payload.get("expires_in")
        if expires_in is not None:
            try:
                expires_at = self._clock() + max(
                    float(expires_in) - EXPIRY_SKEW_SECONDS, 0.0
                )
            except (TypeError, ValueError):
                logger.warning("Ignoring unparsable expires_in: %r", expires_in)

        logger.info("Obtained OAuth2 access token from %s", url)
        return str(token), expires_at

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None


def build_auth_headers(
    provider: Optional[OAuth2TokenProvider],
    *,
    extra_headers: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Build HTTP headers for a search request.

    Args:
        provider: Token provider (None = no authentication)
        extra_headers: Additional headers to include

    Raises:
        TokenError: If a token cannot be obtained
    """
    headers: Dict[str, str] = {"Accept": "application/json"}

    if provider is None:
        logger.debug("No authentication configured")
    else:
        headers["Authorization"] = f"Bearer {provider.get_token()}"

    if extra_headers:
        headers.update(extra_headers)

    return headers
