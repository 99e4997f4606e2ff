"""Pytest configuration and fixtures for agent_authz tests."""

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from agent_authz.core.config import IDPConfig
from agent_authz.core.http import HTTPClient

TEST_CLIENT_SECRET = "agent-client-secret-with-enough-length-for-hs512"  # pragma: allowlist secret


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeIdP:
    """In-memory IdP answering discovery, token and registration calls.

    Every request is recorded. Status codes and bodies can be changed per
    test to simulate IdP failures.
    """

    def __init__(self, base_url: str = "https://idp.example.com"):
        self.base_url = base_url
        self.requests: list[httpx.Request] = []
        self.issued_tokens = 0

        self.metadata_status = 200
        self.metadata_body: bytes | None = None
        self.mtls_endpoint_aliases: dict[str, str] | None = None

        self.token_status = 200
        self.token_body: bytes | None = None
        self.token_expires_in = 3600

        self.registration_status = 201
        self.registration_body: bytes | None = None
        self.unregistration_status = 204

    @property
    def metadata_url(self) -> str:
        return f"{self.base_url}/.well-known/openid-configuration"

    @property
    def issuer(self) -> str:
        return f"{self.base_url}/oauth2"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}/oauth2/token"

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.base_url}/oauth2/authorize"

    @property
    def registration_endpoint(self) -> str:
        return f"{self.base_url}/oauth2/register"

    def metadata(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "issuer": self.issuer,
            "authorization_endpoint": self.authorization_endpoint,
            "token_endpoint": self.token_endpoint,
            "registration_endpoint": self.registration_endpoint,
            "jwks_uri": f"{self.base_url}/oauth2/keys",
            "scopes_supported": ["openid", "resource.READ", "resource.WRITE"],
            "grant_types_supported": ["authorization_code", "client_credentials", "implicit"],
            "response_types_supported": ["code", "token"],
            "token_endpoint_auth_methods_supported": [
                "client_secret_basic",
                "client_secret_post",
                "private_key_jwt",
            ],
        }
        if self.mtls_endpoint_aliases is not None:
            document["mtls_endpoint_aliases"] = self.mtls_endpoint_aliases
        return document

    def requests_to(self, path: str, method: str | None = None) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.url.path == path and (method is None or request.method == method)
        ]

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/token")]

    @property
    def registration_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if "/register" in r.url.path]

    def _token_response(self) -> httpx.Response:
        if self.token_status != 200:
            return httpx.Response(self.token_status, text='{"error":"invalid_client"}')
        if self.token_body is not None:
            return httpx.Response(200, content=self.token_body)
        self.issued_tokens += 1
        return httpx.Response(
            200,
            json={
                "access_token": f"token-{self.issued_tokens}",
                "token_type": "Bearer",
                "expires_in": self.token_expires_in,
            },
        )

    def _registration_response(self, request: httpx.Request) -> httpx.Response:
        if self.registration_status not in (200, 201):
            return httpx.Response(
                self.registration_status, text='{"error":"invalid_client_metadata"}'
            )
        if self.registration_body is not None:
            return httpx.Response(self.registration_status, content=self.registration_body)
        registered = json.loads(request.content)
        registered.update(
            {
                "client_id": "registered-client",
                "client_secret": "registered-secret",  # pragma: allowlist secret
                "client_id_issued_at": 1700000000,
                "registration_access_token": "registration-token",
            }
        )
        return httpx.Response(self.registration_status, json=registered)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/.well-known/openid-configuration":
            if self.metadata_status != 200:
                return httpx.Response(self.metadata_status, text="metadata unavailable")
            if self.metadata_body is not None:
                return httpx.Response(200, content=self.metadata_body)
            return httpx.Response(200, json=self.metadata())
        if path.endswith("/token") and request.method == "POST":
            return self._token_response()
        if path.endswith("/register") and request.method == "POST":
            return self._registration_response(request)
        if "/register/" in path and request.method == "DELETE":
            return httpx.Response(self.unregistration_status)
        return httpx.Response(404, text="not found")

    def http_client(self) -> HTTPClient:
        return HTTPClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_clock() -> FakeClock:
    """Create a fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def fake_idp() -> FakeIdP:
    """Create a simulated IdP."""
    return FakeIdP()


@pytest.fixture
def make_idp_config(fake_idp: FakeIdP) -> Callable[..., IDPConfig]:
    """Factory for IdP configs pointing at the simulated IdP.

    Keyword arguments override top-level config keys; ``auth`` overrides
    are merged into the default client-secret auth block.
    """

    def _make(auth: dict[str, Any] | None = None, **overrides: Any) -> IDPConfig:
        auth_config = {
            "type": "client",
            "clientId": "agent-client",
            "clientSecret": TEST_CLIENT_SECRET,
        }
        auth_config.update(auth or {})
        raw: dict[str, Any] = {
            "name": "test-idp",
            "metadataUrl": fake_idp.metadata_url,
            "auth": auth_config,
        }
        raw.update(overrides)
        return IDPConfig.model_validate(raw)

    return _make


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """Generate one RSA key for the test session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    """PEM SubjectPublicKeyInfo for the session RSA key."""
    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> bytes:
    """Unencrypted PEM PKCS8 private key for the session RSA key."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def certificate(rsa_private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Self-signed client certificate for agent.example.com."""
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example"),
            x509.NameAttribute(NameOID.COMMON_NAME, "agent.example.com"),
        ]
    )
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(rsa_private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName("agent.example.com")]),
            critical=False,
        )
        .sign(rsa_private_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def certificate_pem(certificate: x509.Certificate) -> bytes:
    """PEM encoding of the session client certificate."""
    return certificate.public_bytes(serialization.Encoding.PEM)


@pytest.fixture
def key_files(tmp_path: Path, private_key_pem: bytes, public_key_pem: bytes) -> tuple[Path, Path]:
    """Write the session key pair to disk and return (private, public) paths."""
    private_path = tmp_path / "private_key.pem"
    public_path = tmp_path / "public_key.pem"
    private_path.write_bytes(private_key_pem)
    public_path.write_bytes(public_key_pem)
    return private_path, public_path


@pytest.fixture
def tls_files(tmp_path: Path, private_key_pem: bytes, certificate_pem: bytes) -> tuple[Path, Path]:
    """Write the client certificate and key to disk and return (cert, key) paths."""
    cert_path = tmp_path / "client.crt"
    key_path = tmp_path / "client.key"
    cert_path.write_bytes(certificate_pem)
    key_path.write_bytes(private_key_pem)
    return cert_path, key_path
