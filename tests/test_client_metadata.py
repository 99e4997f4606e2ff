"""Tests for ClientMetadata and ClientBuilder."""

import base64
import json
from datetime import UTC, datetime

import pytest
from cryptography.hazmat.primitives import serialization

from agent_authz.oauth.client_metadata import (
    CLIENT_FIELDS,
    ClientBuilder,
    ClientMetadata,
    derive_response_types,
    validate_redirect_uris,
)
from agent_authz.oauth.key_reader import compute_kid_from_der
from agent_authz.utils.errors import ClientValidationError


class TestClientMetadataWireFormat:
    """Tests for ClientMetadata serialization."""

    def test_fixed_fields_match_model(self):
        """Test that the fixed-key set mirrors the model fields."""
        assert CLIENT_FIELDS == set(ClientMetadata.model_fields) - {"extra_properties"}

    def test_extension_properties_preserved(self):
        """Test that unknown members survive decode and encode with their JSON types."""
        raw = {
            "client_name": "orders-app",
            "grant_types": ["client_credentials"],
            "application_type": "service",
            "pkce_required": False,
            "token_lifetime": 300,
            "vendor": {"tier": "gold"},
        }

        client = ClientMetadata.from_json(json.dumps(raw))

        assert client.client_name == "orders-app"
        assert client.extra_properties == {
            "application_type": "service",
            "pkce_required": False,
            "token_lifetime": 300,
            "vendor": {"tier": "gold"},
        }
        assert json.loads(client.to_json()) == raw

    def test_scope_space_separated(self):
        """Test that scope is a space-joined string on the wire."""
        client = ClientMetadata.from_json('{"scope": "read  write"}')

        assert client.scope == ["read", "write"]
        assert client.to_dict()["scope"] == "read write"

    def test_timestamps_as_unix_seconds(self):
        """Test that issued-at and expiry timestamps are Unix seconds."""
        client = ClientMetadata.from_json(
            '{"client_id": "abc", "client_id_issued_at": 1700000000, "client_secret_expires_at": 0}'
        )

        assert client.client_id_issued_at == datetime.fromtimestamp(1700000000, tz=UTC)
        data = client.to_dict()
        assert data["client_id_issued_at"] == 1700000000
        assert data["client_secret_expires_at"] == 0

    def test_empty_members_omitted(self):
        """Test that unset members are not serialized."""
        assert ClientMetadata(client_name="orders-app").to_dict() == {"client_name": "orders-app"}

    def test_null_lists_decode_as_empty(self):
        """Test that null arrays decode to empty lists."""
        client = ClientMetadata.from_json('{"grant_types": null, "redirect_uris": null}')

        assert client.grant_types == []
        assert client.redirect_uris == []

    def test_fixed_keys_never_in_extras(self):
        """Test that fixed-schema names are dropped from extra properties."""
        client = ClientMetadata(
            client_id="real-id",
            extra_properties={"client_id": "shadow", "custom": "value"},
        )

        assert client.extra_properties == {"custom": "value"}
        assert client.to_dict()["client_id"] == "real-id"

    def test_registration_fields(self):
        """Test RFC 7591 registration management fields."""
        client = ClientMetadata.from_json(
            '{"registration_access_token": "tok", '
            '"registration_client_uri": "https://idp.example.com/register/abc"}'
        )

        assert client.registration_access_token == "tok"
        assert client.registration_client_uri == "https://idp.example.com/register/abc"
        assert client.extra_properties == {}

    def test_non_object_rejected(self):
        """Test that a JSON array is not client metadata."""
        with pytest.raises(ValueError):
            ClientMetadata.from_json("[1, 2]")

    def test_wire_member_named_extra_properties(self):
        """Test that an IdP member called extra_properties is kept verbatim."""
        client = ClientMetadata.from_json('{"client_id": "abc", "extra_properties": 5}')

        assert client.client_id == "abc"
        assert client.extra_properties == {"extra_properties": 5}
        assert client.to_dict() == {"client_id": "abc", "extra_properties": 5}

    def test_wire_object_named_extra_properties_not_flattened(self):
        """Test that an object member called extra_properties stays nested."""
        raw = {"client_id": "abc", "extra_properties": {"tier": "gold"}, "region": "eu"}

        client = ClientMetadata.from_json(json.dumps(raw))

        assert client.extra_properties == {"extra_properties": {"tier": "gold"}, "region": "eu"}
        assert json.loads(client.to_json()) == raw

    def test_non_mapping_extra_properties_argument(self):
        """Test that a non-mapping extra_properties argument fails validation."""
        with pytest.raises(ValueError):
            ClientMetadata(client_id="abc", extra_properties=5)


class TestRedirectValidation:
    """Tests for redirect URI validation and response type derivation."""

    @pytest.mark.parametrize("grant_type", ["authorization_code", "implicit"])
    def test_redirect_required(self, grant_type):
        """Test that redirect-based grants need a redirect URI."""
        client = ClientMetadata(grant_types=[grant_type])

        with pytest.raises(
            ClientValidationError,
            match=f"redirect uri should be set for {grant_type} grant type",
        ):
            validate_redirect_uris(client)

    def test_client_credentials_needs_no_redirect(self):
        """Test that client_credentials passes without redirect URIs."""
        validate_redirect_uris(ClientMetadata(grant_types=["client_credentials"]))

    def test_derive_response_types(self):
        """Test that implied response types are added once."""
        client = ClientMetadata(grant_types=["authorization_code", "implicit", "client_credentials"])

        derive_response_types(client)
        derive_response_types(client)

        assert client.response_types == ["code", "token"]


class TestClientBuilder:
    """Tests for ClientBuilder."""

    def test_basic_build(self):
        """Test a client_credentials client."""
        client = (
            ClientBuilder()
            .set_client_name("orders-app")
            .set_client_uri("https://orders.example.com")
            .set_logo_uri("https://orders.example.com/logo.png")
            .set_scopes(["resource.READ"])
            .set_grant_types(["client_credentials"])
            .set_token_endpoint_auth_method("client_secret_basic")
            .set_extra_properties({"custom": True, "client_secret": "ignored"})
            .build()
        )

        assert client.client_name == "orders-app"
        assert client.scope == ["resource.READ"]
        assert client.response_types == []
        assert client.extra_properties == {"custom": True}

    def test_missing_redirect_uri(self):
        """Test that authorization_code without a redirect URI fails."""
        builder = ClientBuilder().set_grant_types(["authorization_code"])

        with pytest.raises(ClientValidationError, match="authorization_code"):
            builder.build()

    def test_response_types_added_to_explicit_ones(self):
        """Test that derived response types keep explicitly set ones."""
        client = (
            ClientBuilder()
            .set_grant_types(["authorization_code"])
            .set_redirect_uris(["https://orders.example.com/callback"])
            .set_response_types(["id_token"])
            .build()
        )

        assert client.response_types == ["id_token", "code"]

    def test_build_returns_copy(self):
        """Test that built clients do not share state with the builder."""
        builder = ClientBuilder().set_client_name("orders-app").set_scopes(["read"])

        first = builder.build()
        first.scope.append("write")

        assert builder.build().scope == ["read"]

    def test_jwks_uri(self):
        """Test that the JWKS URI is carried."""
        client = (
            ClientBuilder()
            .set_token_endpoint_auth_method("private_key_jwt")
            .set_jwks_uri("https://orders.example.com/jwks")
            .build()
        )

        assert client.jwks_uri == "https://orders.example.com/jwks"
        assert client.jwks is None


class TestClientBuilderPrivateKeyJWT:
    """Tests for private_key_jwt key material."""

    def test_jwks_from_public_key(self, public_key_pem):
        """Test the inline JWKS built from a PEM public key."""
        client = (
            ClientBuilder()
            .set_token_endpoint_auth_method("private_key_jwt")
            .set_jwks(public_key_pem)
            .build()
        )

        keys = client.jwks["keys"]
        assert len(keys) == 1
        jwk = keys[0]
        assert jwk["kty"] == "RSA"
        assert jwk["use"] == "sig"
        assert jwk["kid"] == compute_kid_from_der(public_key_pem)

        assert jwk["e"] == "AQAB"
        assert jwk["n"]

    def test_key_required(self):
        """Test that private_key_jwt needs a key or a JWKS URI."""
        builder = ClientBuilder().set_token_endpoint_auth_method("private_key_jwt")

        with pytest.raises(ClientValidationError, match="public key is required"):
            builder.build()

    def test_invalid_public_key(self):
        """Test that unparsable key bytes are rejected."""
        builder = (
            ClientBuilder()
            .set_token_endpoint_auth_method("private_key_jwt")
            .set_jwks(b"not a key")
        )

        with pytest.raises(ClientValidationError, match="failed to parse public key"):
            builder.build()


class TestClientBuilderTLS:
    """Tests for tls_client_auth certificate metadata."""

    def test_subject_dn_from_certificate(self, certificate, certificate_pem):
        """Test the x5c JWKS and subject DN built from a certificate."""
        client = (
            ClientBuilder()
            .set_token_endpoint_auth_method("tls_client_auth")
            .set_jwks(certificate_pem)
            .build()
        )

        jwk = client.jwks["keys"][0]
        der = certificate.public_bytes(serialization.Encoding.DER)
        assert jwk["x5c"] == [base64.b64encode(der).decode()]
        assert jwk["use"] == "sig"
        assert "CN=agent.example.com" in client.tls_client_auth_subject_dn
        assert client.tls_client_auth_san_dns == ""

    def test_selected_san(self, certificate_pem):
        """Test that a selected SAN replaces the subject DN."""
        client = (
            ClientBuilder()
            .set_token_endpoint_auth_method("self_signed_tls_client_auth")
            .set_jwks(certificate_pem)
            .set_certificate_metadata("tls_client_auth_san_dns")
            .set_tls_client_auth_san_dns("agent.example.com")
            .build()
        )

        assert client.tls_client_auth_san_dns == "agent.example.com"
        assert client.tls_client_auth_subject_dn == ""

    def test_selected_san_without_value(self, certificate_pem):
        """Test that a selected SAN needs a value."""
        builder = (
            ClientBuilder()
            .set_token_endpoint_auth_method("tls_client_auth")
            .set_jwks(certificate_pem)
            .set_certificate_metadata("tls_client_auth_san_email")
        )

        with pytest.raises(ClientValidationError, match="no value provided for tls_client_auth_san_email"):
            builder.build()

    def test_certificate_required(self):
        """Test that the TLS family needs a certificate or a JWKS URI."""
        builder = ClientBuilder().set_token_endpoint_auth_method("tls_client_auth")

        with pytest.raises(ClientValidationError, match="client certificate is required"):
            builder.build()

    def test_invalid_certificate(self):
        """Test that unparsable certificates are rejected."""
        builder = (
            ClientBuilder()
            .set_token_endpoint_auth_method("tls_client_auth")
            .set_jwks(b"-----BEGIN CERTIFICATE-----\nbm9wZQ==\n-----END CERTIFICATE-----\n")
        )

        with pytest.raises(ClientValidationError, match="failed to decode certificate"):
            builder.build()
