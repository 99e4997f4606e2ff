"""OAuth authorization server metadata discovery.

This module fetches and decodes an IdP's discovery document
(RFC 8414 / OpenID Connect Discovery).
"""

import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from agent_authz.core.http import GET, HTTPClient, Request
from agent_authz.utils.errors import ConfigurationError, MetadataFetchError

logger = logging.getLogger(__name__)


class MTLSEndpointAliases(BaseModel):
    """Alternate endpoints an IdP exposes for mutual-TLS clients (RFC 8705)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    token_endpoint: str = ""
    registration_endpoint: str = ""
    introspection_endpoint: str = ""
    revocation_endpoint: str = ""


class AuthorizationServerMetadata(BaseModel):
    """Snapshot of an IdP's discovery document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    issuer: str = ""

    authorization_endpoint: str = ""
    token_endpoint: str = ""
    registration_endpoint: str = ""
    jwks_uri: str = ""
    introspection_endpoint: str = ""
    revocation_endpoint: str = ""
    end_session_endpoint: str = ""
    device_authorization_endpoint: str = ""
    pushed_authorization_request_endpoint: str = ""

    response_types_supported: list[str] = Field(default_factory=list)
    response_modes_supported: list[str] = Field(default_factory=list)
    grant_types_supported: list[str] = Field(default_factory=list)
    subject_types_supported: list[str] = Field(default_factory=list)
    scopes_supported: list[str] = Field(default_factory=list)
    token_endpoint_auth_methods_supported: list[str] = Field(default_factory=list)
    claims_supported: list[str] = Field(default_factory=list)
    code_challenge_methods_supported: list[str] = Field(default_factory=list)
    introspection_endpoint_auth_methods_supported: list[str] = Field(default_factory=list)
    revocation_endpoint_auth_methods_supported: list[str] = Field(default_factory=list)

    request_parameter_supported: bool = False
    request_object_signing_alg_values_supported: list[str] = Field(default_factory=list)

    mtls_endpoint_aliases: MTLSEndpointAliases | None = None

    @property
    def mtls_token_endpoint(self) -> str:
        """Token endpoint for mTLS clients, falling back to the regular one."""
        if self.mtls_endpoint_aliases and self.mtls_endpoint_aliases.token_endpoint:
            return self.mtls_endpoint_aliases.token_endpoint
        return self.token_endpoint

    @property
    def mtls_registration_endpoint(self) -> str:
        """Registration endpoint for mTLS clients, falling back to the regular one."""
        if self.mtls_endpoint_aliases and self.mtls_endpoint_aliases.registration_endpoint:
            return self.mtls_endpoint_aliases.registration_endpoint
        return self.registration_endpoint


async def fetch_metadata(http_client: HTTPClient, metadata_url: str) -> AuthorizationServerMetadata:
    """Fetch and decode authorization server metadata.

    Args:
        http_client: Transport to use
        metadata_url: Discovery document URL

    Returns:
        Decoded AuthorizationServerMetadata

    Raises:
        ConfigurationError: If no metadata URL is given
        TransportError: If the discovery endpoint cannot be reached
        MetadataFetchError: On a non-200 status or an undecodable document
    """
    if http_client is None or not metadata_url:
        raise ConfigurationError("unexpected arguments: metadata URL is required")

    logger.debug(f"Fetching authorization server metadata from: {metadata_url}")
    response = await http_client.send(Request(method=GET, url=metadata_url))

    if response.status_code != 200:
        raise MetadataFetchError(
            f"error fetching metadata status code: {response.status_code}, "
            f"body: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )

    try:
        return AuthorizationServerMetadata.model_validate_json(response.body)
    except PydanticValidationError as e:
        raise MetadataFetchError(
            f"unable to decode metadata from {metadata_url}: {e}",
            status_code=response.status_code,
            body=response.text,
        ) from e
