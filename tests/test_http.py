"""Tests for the HTTP transport wrapper and the keyed cache."""

import httpx
import pytest

from agent_authz.core.cache import KeyedCache
from agent_authz.core.http import HTTPClient, Request
from agent_authz.utils.errors import TransportError


class TestHTTPClient:
    """Tests for HTTPClient.send."""

    @pytest.mark.asyncio
    async def test_send_passes_request_through(self):
        """Test method, headers, query params and body reach the server."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, headers={"X-Request-Id": "42"}, content=b'{"ok": true}')

        client = HTTPClient(transport=httpx.MockTransport(handler))
        response = await client.send(
            Request(
                method="POST",
                url="https://idp.example.com/register",
                headers={"X-Tenant": "acme"},
                query_params={"tenant": "acme"},
                body=b"payload",
            )
        )

        assert response.status_code == 201
        assert response.headers["x-request-id"] == "42"
        assert response.text == '{"ok": true}'
        assert seen[0].method == "POST"
        assert seen[0].headers["X-Tenant"] == "acme"
        assert seen[0].url.params["tenant"] == "acme"
        assert seen[0].content == b"payload"

    @pytest.mark.asyncio
    async def test_error_status_is_not_an_exception(self):
        """Test that non-2xx responses are returned, not raised."""
        client = HTTPClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))

        response = await client.send(Request(method="GET", url="https://idp.example.com/"))

        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test that timeouts raise TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = HTTPClient(transport=httpx.MockTransport(handler))

        with pytest.raises(TransportError, match="timed out") as exc_info:
            await client.send(Request(method="GET", url="https://idp.example.com/"))

        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test that connection failures raise TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = HTTPClient(transport=httpx.MockTransport(handler))

        with pytest.raises(TransportError, match="failed"):
            await client.send(Request(method="GET", url="https://idp.example.com/"))


class TestKeyedCache:
    """Tests for KeyedCache."""

    def test_primary_and_secondary_lookup(self):
        """Test that secondary keys resolve to the same item."""
        cache = KeyedCache()
        item = object()
        cache.set("okta", item)
        cache.set_secondary_key("okta", "issuer:https://okta.example.com")

        assert cache.has("okta")
        assert len(cache) == 1
        assert cache.get("okta") is item
        assert cache.get_by_secondary_key("issuer:https://okta.example.com") is item

    def test_missing_keys(self):
        """Test that misses raise KeyError."""
        cache = KeyedCache()

        with pytest.raises(KeyError):
            cache.get("missing")
        with pytest.raises(KeyError):
            cache.get_by_secondary_key("missing")
        with pytest.raises(KeyError):
            cache.set_secondary_key("missing", "alias")
