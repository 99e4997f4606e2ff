"""HTTP transport used for every IdP call.

A narrow request/response wrapper over httpx so the OAuth code deals in
plain status codes and bodies and never in transport specifics.
"""

import logging
from dataclasses import dataclass, field

import httpx

from agent_authz.core.config import TLSConfig
from agent_authz.utils.errors import TransportError

logger = logging.getLogger(__name__)

GET = "GET"
POST = "POST"
DELETE = "DELETE"

DEFAULT_TIMEOUT = 30.0


@dataclass
class Request:
    """Outgoing HTTP request."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


@dataclass
class Response:
    """HTTP response as seen by the OAuth code."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class HTTPClient:
    """Sends requests to an IdP with the configured TLS, proxy and timeout."""

    def __init__(
        self,
        tls_config: TLSConfig | None = None,
        proxy_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP client.

        Args:
            tls_config: TLS settings (default: system trust store, no client cert)
            proxy_url: Optional proxy for all calls
            timeout: Timeout in seconds applied to every call
            transport: Optional httpx transport, replaces the network layer
        """
        self.tls_config = tls_config
        self.proxy_url = proxy_url
        self.timeout = timeout
        self._transport = transport

    def _client_kwargs(self) -> dict:
        kwargs: dict = {"timeout": self.timeout}
        if self._transport is not None:
            kwargs["transport"] = self._transport
            return kwargs
        if self.tls_config is not None:
            kwargs["verify"] = self.tls_config.build_ssl_context()
        if self.proxy_url:
            kwargs["proxy"] = self.proxy_url
        return kwargs

    async def send(self, request: Request) -> Response:
        """Send a request and return the response, whatever its status.

        Args:
            request: Request to send

        Returns:
            Response with status code, headers and raw body

        Raises:
            TransportError: If the connection fails or times out
        """
        async with httpx.AsyncClient(**self._client_kwargs()) as client:
            try:
                response = await client.request(
                    request.method,
                    request.url,
                    params=request.query_params or None,
                    headers=request.headers,
                    content=request.body,
                )
            except httpx.TimeoutException as e:
                logger.debug(f"{request.method} {request.url} timed out")
                raise TransportError(f"request to {request.url} timed out") from e
            except httpx.HTTPError as e:
                logger.debug(f"{request.method} {request.url} failed: {e}")
                raise TransportError(f"request to {request.url} failed: {e}") from e

        return Response(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )
