"""OAuth client representation exchanged with IdP registration endpoints.

ClientMetadata follows RFC 7591. Any JSON member outside the fixed schema is
kept in ``extra_properties`` and written back at the top level, so vendor
fields (e.g. Okta's ``pkce_required``) survive a round trip.
"""

import base64
import json
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import ECAlgorithm, RSAAlgorithm
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from agent_authz.core.config import PRIVATE_KEY_JWT, TLS_AUTH_TYPES
from agent_authz.utils.errors import ClientValidationError, KeyReadError

from .constants import (
    AUTH_RESPONSE_CODE,
    AUTH_RESPONSE_TOKEN,
    GRANT_TYPE_AUTHORIZATION_CODE,
    GRANT_TYPE_IMPLICIT,
    TLS_CLIENT_AUTH_SAN_DNS,
    TLS_CLIENT_AUTH_SAN_EMAIL,
    TLS_CLIENT_AUTH_SAN_IP,
    TLS_CLIENT_AUTH_SAN_URI,
)
from .key_reader import compute_kid_from_der, load_public_key

logger = logging.getLogger(__name__)

# JSON members of the fixed schema; everything else is an extension property
CLIENT_FIELDS = frozenset(
    {
        "client_name",
        "client_id",
        "client_secret",
        "client_id_issued_at",
        "client_secret_expires_at",
        "scope",
        "grant_types",
        "response_types",
        "token_endpoint_auth_method",
        "client_uri",
        "redirect_uris",
        "jwks_uri",
        "jwks",
        "logo_uri",
        "tls_client_auth_subject_dn",
        "tls_client_auth_san_dns",
        "tls_client_auth_san_email",
        "tls_client_auth_san_ip",
        "tls_client_auth_san_uri",
        "registration_access_token",
        "registration_client_uri",
    }
)

GRANT_TYPES_WITH_REDIRECTS = (GRANT_TYPE_AUTHORIZATION_CODE, GRANT_TYPE_IMPLICIT)

# Response type implied by each redirect-based grant type
GRANT_RESPONSE_TYPES = {
    GRANT_TYPE_AUTHORIZATION_CODE: AUTH_RESPONSE_CODE,
    GRANT_TYPE_IMPLICIT: AUTH_RESPONSE_TOKEN,
}


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and not value)


def _without_fixed_keys(properties: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in properties.items() if key not in CLIENT_FIELDS}


class ClientMetadata(BaseModel):
    """OAuth client application as registered with an IdP."""

    model_config = ConfigDict(extra="ignore")

    client_name: str = ""
    client_id: str = ""
    client_secret: str = ""
    client_id_issued_at: datetime | None = None
    client_secret_expires_at: datetime | None = None

    scope: list[str] = Field(default_factory=list)

    grant_types: list[str] = Field(default_factory=list)
    response_types: list[str] = Field(default_factory=list)
    token_endpoint_auth_method: str = ""

    client_uri: str = ""
    redirect_uris: list[str] = Field(default_factory=list)
    jwks_uri: str = ""
    jwks: dict[str, Any] | None = None
    logo_uri: str = ""
    tls_client_auth_subject_dn: str = ""
    tls_client_auth_san_dns: str = ""
    tls_client_auth_san_email: str = ""
    tls_client_auth_san_ip: str = ""
    tls_client_auth_san_uri: str = ""
    registration_access_token: str = ""
    registration_client_uri: str = ""

    extra_properties: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def collect_extra_properties(cls, data: Any) -> Any:
        """Move every member outside the fixed schema into extra_properties."""
        if not isinstance(data, Mapping):
            return data
        fields = {key: value for key, value in data.items() if key in CLIENT_FIELDS}
        given = data.get("extra_properties")
        if given is not None and not isinstance(given, Mapping):
            raise ValueError("extra_properties must be a mapping")
        extras = dict(given or {})
        extras.update(
            (key, value)
            for key, value in data.items()
            if key not in CLIENT_FIELDS and key != "extra_properties"
        )
        fields["extra_properties"] = extras
        return fields

    @field_validator("extra_properties")
    @classmethod
    def drop_fixed_keys(cls, v: dict[str, Any]) -> dict[str, Any]:
        return _without_fixed_keys(v)

    @field_validator("scope", mode="before")
    @classmethod
    def split_scope(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [scope for scope in v.split(" ") if scope]
        return v

    @field_validator("grant_types", "response_types", "redirect_uris", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the registration wire format.

        Empty members are omitted, scope is space-joined, timestamps become
        Unix seconds, and extension properties are inlined at the top level.
        """
        data: dict[str, Any] = {}
        for name in type(self).model_fields:
            if name == "extra_properties":
                continue
            value = getattr(self, name)
            if _is_empty(value):
                continue
            if name == "scope":
                value = " ".join(value)
            elif isinstance(value, datetime):
                value = int(value.timestamp())
            elif isinstance(value, list):
                value = list(value)
            data[name] = value

        for key, value in self.extra_properties.items():
            if key not in CLIENT_FIELDS:
                data[key] = value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, data: str | bytes) -> "ClientMetadata":
        """Deserialize from the registration wire format.

        A member named ``extra_properties`` on the wire is an ordinary
        extension property and is kept as is.

        Raises:
            ValueError: If the data is not a JSON object
            pydantic.ValidationError: If a fixed member has the wrong type
        """
        decoded = json.loads(data)
        if not isinstance(decoded, dict):
            raise ValueError("client metadata must be a JSON object")
        fields = {key: value for key, value in decoded.items() if key in CLIENT_FIELDS}
        return cls.model_validate({**fields, "extra_properties": _without_fixed_keys(decoded)})


def validate_redirect_uris(client: ClientMetadata) -> None:
    """Reject redirect-based grant types that have no redirect URI.

    Raises:
        ClientValidationError: If a redirect URI is required but missing
    """
    for grant_type in client.grant_types:
        if grant_type in GRANT_TYPES_WITH_REDIRECTS and not client.redirect_uris:
            raise ClientValidationError(
                f"invalid client metadata redirect uri should be set for {grant_type} grant type"
            )


def derive_response_types(client: ClientMetadata) -> None:
    """Add the response types implied by the grant types, keeping explicit ones."""
    for grant_type in client.grant_types:
        response_type = GRANT_RESPONSE_TYPES.get(grant_type)
        if response_type and response_type not in client.response_types:
            client.response_types = [*client.response_types, response_type]


def _public_key_to_jwk(public_key: Any) -> dict[str, Any]:
    if isinstance(public_key, rsa.RSAPublicKey):
        return RSAAlgorithm.to_jwk(public_key, as_dict=True)
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return ECAlgorithm.to_jwk(public_key, as_dict=True)
    raise ClientValidationError(f"unsupported public key type {type(public_key).__name__}")


class ClientBuilder:
    """Fluent builder for ClientMetadata registration requests.

    Example:
        client = (
            ClientBuilder()
            .set_client_name("orders-app")
            .set_grant_types(["authorization_code"])
            .set_redirect_uris(["https://orders.example.com/callback"])
            .build()
        )
    """

    def __init__(self):
        self._metadata = ClientMetadata()
        self._jwks: bytes = b""
        self._jwks_uri = ""
        self._certificate_metadata = ""
        self._tls_client_auth_san_dns = ""
        self._tls_client_auth_san_email = ""
        self._tls_client_auth_san_ip = ""
        self._tls_client_auth_san_uri = ""

    def set_client_name(self, name: str) -> "ClientBuilder":
        self._metadata.client_name = name
        return self

    def set_client_uri(self, client_uri: str) -> "ClientBuilder":
        self._metadata.client_uri = client_uri
        return self

    def set_scopes(self, scopes: list[str]) -> "ClientBuilder":
        self._metadata.scope = list(scopes)
        return self

    def set_grant_types(self, grant_types: list[str]) -> "ClientBuilder":
        self._metadata.grant_types = list(grant_types)
        return self

    def set_response_types(self, response_types: list[str]) -> "ClientBuilder":
        self._metadata.response_types = list(response_types)
        return self

    def set_token_endpoint_auth_method(self, method: str) -> "ClientBuilder":
        self._metadata.token_endpoint_auth_method = method
        return self

    def set_redirect_uris(self, redirect_uris: list[str]) -> "ClientBuilder":
        self._metadata.redirect_uris = list(redirect_uris)
        return self

    def set_logo_uri(self, logo_uri: str) -> "ClientBuilder":
        self._metadata.logo_uri = logo_uri
        return self

    def set_jwks_uri(self, jwks_uri: str) -> "ClientBuilder":
        self._jwks_uri = jwks_uri
        return self

    def set_jwks(self, jwks: bytes) -> "ClientBuilder":
        """Set the PEM public key (private_key_jwt) or certificate (tls_client_auth)."""
        self._jwks = jwks
        return self

    def set_certificate_metadata(self, certificate_metadata: str) -> "ClientBuilder":
        """Select which certificate attribute identifies a tls_client_auth client."""
        self._certificate_metadata = certificate_metadata
        return self

    def set_tls_client_auth_san_dns(self, value: str) -> "ClientBuilder":
        self._tls_client_auth_san_dns = value
        return self

    def set_tls_client_auth_san_email(self, value: str) -> "ClientBuilder":
        self._tls_client_auth_san_email = value
        return self

    def set_tls_client_auth_san_ip(self, value: str) -> "ClientBuilder":
        self._tls_client_auth_san_ip = value
        return self

    def set_tls_client_auth_san_uri(self, value: str) -> "ClientBuilder":
        self._tls_client_auth_san_uri = value
        return self

    def set_extra_properties(self, extra_properties: dict[str, Any]) -> "ClientBuilder":
        self._metadata.extra_properties = _without_fixed_keys(extra_properties)
        return self

    def _set_jwks(self, jwk: dict[str, Any]) -> None:
        self._metadata.jwks = {"keys": [jwk]}

    def _decode_public_key_jwk(self) -> dict[str, Any]:
        try:
            public_key = load_public_key(self._jwks)
            kid = compute_kid_from_der(self._jwks)
        except KeyReadError as e:
            raise ClientValidationError(f"failed to parse public key: {e}") from e
        jwk = _public_key_to_jwk(public_key)
        jwk["kid"] = kid
        jwk["use"] = "sig"
        return jwk

    def _decode_certificate_jwk(self) -> tuple[str, dict[str, Any]]:
        try:
            certificate = x509.load_pem_x509_certificate(self._jwks)
        except ValueError as e:
            raise ClientValidationError("failed to decode certificate") from e

        jwk = _public_key_to_jwk(certificate.public_key())
        der = certificate.public_bytes(serialization.Encoding.DER)
        jwk["x5c"] = [base64.b64encode(der).decode("ascii")]
        jwk["use"] = "sig"
        return certificate.subject.rfc4514_string(), jwk

    def _set_private_key_jwt_properties(self) -> None:
        if not self._jwks and not self._jwks_uri:
            raise ClientValidationError(
                "public key is required for private_key_jwt token authentication method"
            )
        if self._jwks:
            self._set_jwks(self._decode_public_key_jwk())

    def _set_tls_client_auth_properties(self) -> None:
        if not self._jwks and not self._jwks_uri:
            raise ClientValidationError(
                "client certificate is required for "
                "tls_client_auth/self_signed_tls_client_auth token authentication method"
            )
        if not self._jwks:
            return

        subject_dn, jwk = self._decode_certificate_jwk()
        self._set_jwks(jwk)

        san_values = {
            TLS_CLIENT_AUTH_SAN_DNS: self._tls_client_auth_san_dns,
            TLS_CLIENT_AUTH_SAN_EMAIL: self._tls_client_auth_san_email,
            TLS_CLIENT_AUTH_SAN_IP: self._tls_client_auth_san_ip,
            TLS_CLIENT_AUTH_SAN_URI: self._tls_client_auth_san_uri,
        }
        if self._certificate_metadata in san_values:
            value = san_values[self._certificate_metadata]
            if not value:
                raise ClientValidationError(
                    f"no value provided for {self._certificate_metadata}"
                )
            setattr(self._metadata, self._certificate_metadata, value)
        else:
            self._metadata.tls_client_auth_subject_dn = subject_dn

    def build(self) -> ClientMetadata:
        """Validate and return the client metadata.

        Returns:
            A new ClientMetadata instance

        Raises:
            ClientValidationError: If redirect URIs or key material are missing
        """
        validate_redirect_uris(self._metadata)
        derive_response_types(self._metadata)

        self._metadata.jwks_uri = self._jwks_uri
        method = self._metadata.token_endpoint_auth_method
        if method == PRIVATE_KEY_JWT:
            self._set_private_key_jwt_properties()
        elif method in TLS_AUTH_TYPES:
            self._set_tls_client_auth_properties()

        return self._metadata.model_copy(deep=True)
