"""OAuth 2.0 client authentication and IdP integration.

This package provides:
- Token acquisition with pluggable client authentication (RFC 6749, RFC 7523, RFC 8705)
- OAuth Authorization Server Metadata discovery (RFC 8414)
- Dynamic client registration (RFC 7591) with vendor-specific adjustments
- A registry of configured IdP providers
"""

from .auth_client import AuthClient, TokenResponse
from .authenticators import (
    Authenticator,
    ClientSecretBasicAuthenticator,
    ClientSecretJWTAuthenticator,
    ClientSecretPostAuthenticator,
    PrivateKeyJWTAuthenticator,
    TLSClientAuthenticator,
)
from .client_metadata import ClientBuilder, ClientMetadata
from .key_reader import KeyReader, compute_kid_from_der
from .provider import Provider
from .registry import ProviderRegistry
from .server_metadata import AuthorizationServerMetadata, fetch_metadata
from .typed_idp import GenericIDP, OktaIDP, TypedIDP, get_typed_idp

__all__ = [
    # Token acquisition
    "AuthClient",
    "TokenResponse",
    "Authenticator",
    "ClientSecretBasicAuthenticator",
    "ClientSecretPostAuthenticator",
    "ClientSecretJWTAuthenticator",
    "PrivateKeyJWTAuthenticator",
    "TLSClientAuthenticator",
    "KeyReader",
    "compute_kid_from_der",
    # Client registration
    "ClientBuilder",
    "ClientMetadata",
    # Providers
    "AuthorizationServerMetadata",
    "fetch_metadata",
    "Provider",
    "ProviderRegistry",
    "TypedIDP",
    "GenericIDP",
    "OktaIDP",
    "get_typed_idp",
]
