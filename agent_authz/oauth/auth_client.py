"""Token acquisition and caching for the client credentials grant.

AuthClient owns one authenticator and keeps the most recent access token
until 80% of its lifetime has elapsed. Concurrent callers share a single
in-flight token request.
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlencode

from agent_authz.core.http import POST, HTTPClient, Request
from agent_authz.utils.errors import MissingAuthenticatorError, ProtocolError, TokenRequestError

from .authenticators import Authenticator
from .constants import DEFAULT_SERVER_NAME, HDR_CONTENT_TYPE, MIME_APPLICATION_FORM_URLENCODED

logger = logging.getLogger(__name__)


@dataclass
class TokenResponse:
    """Fields of a token endpoint response the client relies on."""

    access_token: str
    expires_in: int = 0

    @classmethod
    def from_json(cls, body: bytes) -> "TokenResponse":
        """Decode a token response body.

        Raises:
            ProtocolError: If the body is not JSON or has no access_token
        """
        try:
            data = json.loads(body)
            return cls(
                access_token=str(data["access_token"]),
                expires_in=int(data.get("expires_in") or 0),
            )
        except (ValueError, TypeError, KeyError) as e:
            raise ProtocolError(f"unable to unmarshal token: {e}") from e


class AuthClient:
    """Fetches and caches access tokens from an OAuth token endpoint."""

    def __init__(
        self,
        token_url: str,
        http_client: HTTPClient,
        authenticator: Authenticator | None,
        server_name: str = DEFAULT_SERVER_NAME,
        request_headers: dict[str, str] | None = None,
        query_params: dict[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize auth client.

        Args:
            token_url: Token endpoint URL
            http_client: Transport used for token requests
            authenticator: Strategy that builds the token request
            server_name: Name used in errors and logs
            request_headers: Extra headers sent with every token request
            query_params: Extra query parameters sent with every token request
            clock: Monotonic clock in seconds, used for cache expiry

        Raises:
            MissingAuthenticatorError: If no authenticator is given
        """
        if authenticator is None:
            raise MissingAuthenticatorError()

        self.token_url = token_url
        self.http_client = http_client
        self.authenticator = authenticator
        self.server_name = server_name or DEFAULT_SERVER_NAME
        self.request_headers = dict(request_headers or {})
        self.query_params = dict(query_params or {})
        self._clock = clock

        # Guarded by _lock
        self._lock = asyncio.Lock()
        self._cached_token: str | None = None
        self._refresh_at = 0.0

    def _get_cached_token(self) -> str | None:
        if self._cached_token is not None and self._clock() >= self._refresh_at:
            self._cached_token = None
        return self._cached_token

    async def get_token(self) -> str:
        """Return the cached token if still fresh, otherwise fetch a new one.

        Raises:
            TransportError: If the token endpoint cannot be reached
            TokenRequestError: If the token endpoint rejects the request
            ProtocolError: If the token response cannot be decoded
        """
        return await self.fetch_token(use_cached_token=True)

    async def fetch_token(self, use_cached_token: bool = True) -> str:
        """Return an access token, optionally bypassing the cache.

        Only one token request per client is in flight at a time; callers
        arriving during a refresh wait for it and then see its result.

        Args:
            use_cached_token: Serve a fresh cached token when available

        Returns:
            Access token string
        """
        async with self._lock:
            token = self._get_cached_token()
            if use_cached_token and token:
                return token
            return await self._fetch_new_token()

    async def _fetch_new_token(self) -> str:
        tokens = await self._get_oauth_tokens()

        # Refresh at 80% of the lifetime
        almost_expires = (tokens.expires_in * 4) // 5

        self._cached_token = tokens.access_token
        self._refresh_at = self._clock() + almost_expires
        logger.debug(f"Fetched token from {self.server_name}, refresh in {almost_expires}s")
        return tokens.access_token

    async def _get_oauth_tokens(self) -> TokenResponse:
        form, headers = self.authenticator.prepare_request()

        request_headers = {HDR_CONTENT_TYPE: MIME_APPLICATION_FORM_URLENCODED}
        request_headers.update(self.request_headers)
        request_headers.update(headers)

        response = await self.http_client.send(
            Request(
                method=POST,
                url=self.token_url,
                headers=request_headers,
                query_params=self.query_params,
                body=urlencode(form).encode("utf-8"),
            )
        )

        if response.status_code != 200:
            error = TokenRequestError(self.server_name, response.status_code, response.text)
            logger.debug(
                f"{error} (url: {self.token_url}, status: {response.status_code}, "
                f"body: {response.text})"
            )
            raise error

        return TokenResponse.from_json(response.body)
