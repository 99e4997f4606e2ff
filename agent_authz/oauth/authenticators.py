"""Client authentication strategies for the client credentials grant.

Each authenticator turns the agent's credentials into the form body (and
any extra headers) of a token request:

- client_secret_basic: secret in an HTTP Basic Authorization header
- client_secret_post: secret in the form body
- client_secret_jwt: HMAC-signed JWT assertion keyed by the secret
- private_key_jwt: asymmetric JWT assertion identified by a key ID
- tls_client_auth: certificate presented by the transport, client ID in the form
"""

import base64
import logging
import time
import uuid
from abc import ABC, abstractmethod

import jwt
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from .constants import (
    ASSERTION_LIFETIME_SECONDS,
    ASSERTION_TYPE_JWT,
    ASYMMETRIC_SIGNING_METHODS,
    GRANT_TYPE_CLIENT_CREDENTIALS,
    HDR_AUTHORIZATION,
    HMAC_SIGNING_METHODS,
    META_CLIENT_ASSERTION,
    META_CLIENT_ASSERTION_TYPE,
    META_CLIENT_ID,
    META_CLIENT_SECRET,
    META_GRANT_TYPE,
    META_SCOPE,
    SIGNING_METHOD_HS256,
    SIGNING_METHOD_RS256,
)
from .key_reader import compute_kid_from_der

logger = logging.getLogger(__name__)

FormValues = dict[str, str]
Headers = dict[str, str]


def get_signing_method(signing_method: str, allowed: frozenset[str], default: str) -> str:
    """Return signing_method if it is one of allowed, otherwise default."""
    if signing_method in allowed:
        return signing_method
    if signing_method:
        logger.debug(f"Unsupported signing method {signing_method}, using {default}")
    return default


def _base_form(scope: str) -> FormValues:
    form = {META_GRANT_TYPE: GRANT_TYPE_CLIENT_CREDENTIALS}
    if scope:
        form[META_SCOPE] = scope
    return form


def _assertion_claims(issuer: str, client_id: str, audience: str) -> dict:
    now = int(time.time())
    return {
        "iss": issuer,
        "sub": client_id,
        "aud": audience,
        "exp": now + ASSERTION_LIFETIME_SECONDS,
        "iat": now,
        "jti": str(uuid.uuid4()),
    }


class Authenticator(ABC):
    """Base class for token request authenticators."""

    @abstractmethod
    def prepare_request(self) -> tuple[FormValues, Headers]:
        """Build the token request.

        Returns:
            Tuple of (form values, extra headers)

        Raises:
            KeyReadError: If signing material is unusable
        """
        pass


class ClientSecretBasicAuthenticator(Authenticator):
    """Sends the client secret in an HTTP Basic Authorization header."""

    def __init__(self, client_id: str, client_secret: str, scope: str = ""):
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope

    def prepare_request(self) -> tuple[FormValues, Headers]:
        credentials = f"{self.client_id}:{self.client_secret}".encode("utf-8")
        headers = {HDR_AUTHORIZATION: "Basic " + base64.b64encode(credentials).decode("ascii")}
        return _base_form(self.scope), headers


class ClientSecretPostAuthenticator(Authenticator):
    """Sends the client ID and secret in the form body."""

    def __init__(self, client_id: str, client_secret: str, scope: str = ""):
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope

    def prepare_request(self) -> tuple[FormValues, Headers]:
        form = _base_form(self.scope)
        form[META_CLIENT_ID] = self.client_id
        if self.client_secret:
            form[META_CLIENT_SECRET] = self.client_secret
        return form, {}


class ClientSecretJWTAuthenticator(Authenticator):
    """Authenticates with a JWT assertion signed by the client secret (HMAC)."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        scope: str = "",
        issuer: str = "",
        audience: str = "",
        signing_method: str = "",
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.issuer = issuer or client_id
        self.audience = audience
        self.signing_method = get_signing_method(
            signing_method, HMAC_SIGNING_METHODS, SIGNING_METHOD_HS256
        )

    def prepare_request(self) -> tuple[FormValues, Headers]:
        assertion = jwt.encode(
            _assertion_claims(self.issuer, self.client_id, self.audience),
            self.client_secret,
            algorithm=self.signing_method,
        )
        form = _base_form(self.scope)
        form[META_CLIENT_ID] = self.client_id
        form[META_CLIENT_ASSERTION_TYPE] = ASSERTION_TYPE_JWT
        form[META_CLIENT_ASSERTION] = assertion
        return form, {}


class PrivateKeyJWTAuthenticator(Authenticator):
    """Authenticates with a JWT assertion signed by the client's private key.

    The assertion header carries the key ID derived from the public key, so
    the form does not repeat the client ID.
    """

    def __init__(
        self,
        client_id: str,
        private_key: PrivateKeyTypes,
        public_key: bytes,
        scope: str = "",
        issuer: str = "",
        audience: str = "",
        signing_method: str = "",
    ):
        self.client_id = client_id
        self.private_key = private_key
        self.public_key = public_key
        self.scope = scope
        self.issuer = issuer or f"{ASSERTION_TYPE_JWT}:{client_id}"
        self.audience = audience
        self.signing_method = get_signing_method(
            signing_method, ASYMMETRIC_SIGNING_METHODS, SIGNING_METHOD_RS256
        )

    def prepare_request(self) -> tuple[FormValues, Headers]:
        kid = compute_kid_from_der(self.public_key)
        assertion = jwt.encode(
            _assertion_claims(self.issuer, self.client_id, self.audience),
            self.private_key,
            algorithm=self.signing_method,
            headers={"kid": kid},
        )
        form = _base_form(self.scope)
        form[META_CLIENT_ASSERTION_TYPE] = ASSERTION_TYPE_JWT
        form[META_CLIENT_ASSERTION] = assertion
        return form, {}


class TLSClientAuthenticator(Authenticator):
    """Identifies the client by ID; the certificate goes over the TLS layer."""

    def __init__(self, client_id: str, scope: str = ""):
        self.client_id = client_id
        self.scope = scope

    def prepare_request(self) -> tuple[FormValues, Headers]:
        form = _base_form(self.scope)
        form[META_CLIENT_ID] = self.client_id
        return form, {}
