"""External identity provider integration.

A Provider binds one IdP configuration to the IdP's discovered metadata,
the auth client used to obtain management tokens, and the vendor-specific
registration hooks. It registers and unregisters OAuth clients through the
IdP's dynamic client registration endpoint (RFC 7591).
"""

import logging

from agent_authz.core.config import (
    ACCESS_TOKEN,
    CLIENT,
    CLIENT_SECRET_BASIC,
    CLIENT_SECRET_JWT,
    CLIENT_SECRET_POST,
    PRIVATE_KEY_JWT,
    SELF_SIGNED_TLS_CLIENT_AUTH,
    TLS_CLIENT_AUTH,
    IDPConfig,
    TLSConfig,
)
from agent_authz.core.http import DEFAULT_TIMEOUT, DELETE, POST, HTTPClient, Request
from agent_authz.utils.errors import (
    AuthzError,
    RegistrationError,
    UnknownAuthTypeError,
    UnregistrationError,
)

from .auth_client import AuthClient
from .authenticators import (
    Authenticator,
    ClientSecretBasicAuthenticator,
    ClientSecretJWTAuthenticator,
    ClientSecretPostAuthenticator,
    PrivateKeyJWTAuthenticator,
    TLSClientAuthenticator,
)
from .client_metadata import ClientMetadata, derive_response_types, validate_redirect_uris
from .constants import HDR_AUTHORIZATION, HDR_CONTENT_TYPE, MIME_APPLICATION_JSON
from .key_reader import KeyReader
from .server_metadata import AuthorizationServerMetadata, fetch_metadata
from .typed_idp import TypedIDP, get_typed_idp

logger = logging.getLogger(__name__)


def _describe_client(client: ClientMetadata) -> str:
    return (
        f"client-name={client.client_name!r}, grant-types={client.grant_types}, "
        f"token-auth-method={client.token_endpoint_auth_method!r}, "
        f"response-types={client.response_types}, redirect-uris={client.redirect_uris}"
    )


class Provider:
    """OAuth client registration against one external IdP.

    Use Provider.create() to build one; it fetches the IdP metadata and
    selects the authenticator from the configured auth type.

    Usage:
        provider = await Provider.create(idp_config, client_timeout=10)
        client = ClientBuilder().set_client_name("orders-app").build()
        registered = await provider.register_client(client)
        await provider.unregister_client(registered.client_id)
    """

    def __init__(
        self,
        idp_config: IDPConfig,
        http_client: HTTPClient,
        metadata: AuthorizationServerMetadata,
        typed_idp: TypedIDP,
    ):
        self._config = idp_config
        self._http_client = http_client
        self._metadata = metadata
        self._typed_idp = typed_idp
        self._auth_client: AuthClient | None = None

    @classmethod
    async def create(
        cls,
        idp_config: IDPConfig,
        tls_config: TLSConfig | None = None,
        proxy_url: str | None = None,
        client_timeout: float = DEFAULT_TIMEOUT,
        *,
        metadata: AuthorizationServerMetadata | None = None,
        http_client: HTTPClient | None = None,
    ) -> "Provider":
        """Create a provider for an IdP.

        Args:
            idp_config: Validated IdP configuration
            tls_config: TLS settings, used when the IdP config has none
            proxy_url: Optional proxy for all IdP calls
            client_timeout: Timeout in seconds for every IdP call
            metadata: Already-known metadata; skips discovery when given
            http_client: Transport override (default: built from the TLS,
                proxy and timeout arguments)

        Returns:
            Ready-to-use Provider

        Raises:
            ExtraPropertiesValidationError: If the extra properties conflict
            TransportError: If the metadata endpoint cannot be reached
            MetadataFetchError: If the metadata cannot be fetched or decoded
            UnknownAuthTypeError: If the auth type has no authenticator
            KeyReadError: If private_key_jwt keys cannot be loaded
        """
        if http_client is None:
            http_client = HTTPClient(
                tls_config=idp_config.tls or tls_config,
                proxy_url=proxy_url,
                timeout=client_timeout,
            )

        typed_idp = get_typed_idp(idp_config.type)
        typed_idp.validate_extra_properties(idp_config.extra_properties)

        if metadata is None:
            try:
                metadata = await fetch_metadata(http_client, idp_config.metadata_url)
            except AuthzError as e:
                logger.error(
                    f"Unable to fetch OAuth authorization server metadata for provider "
                    f"{idp_config.name!r} (type: {idp_config.type}, "
                    f"metadata-url: {idp_config.metadata_url}): {e}"
                )
                raise

        provider = cls(idp_config, http_client, metadata, typed_idp)

        # Access-token auth uses the configured token as is
        if idp_config.auth.type != ACCESS_TOKEN:
            provider._auth_client = provider._create_auth_client()
        return provider

    def _new_auth_client(self, token_url: str, authenticator: Authenticator) -> AuthClient:
        auth = self._config.auth
        return AuthClient(
            token_url,
            self._http_client,
            authenticator,
            server_name=self._config.name,
            request_headers=auth.request_headers,
            query_params=auth.query_params,
        )

    def _create_auth_client(self) -> AuthClient:
        auth = self._config.auth
        auth_type = auth.type

        if auth_type in (CLIENT, CLIENT_SECRET_POST):
            authenticator: Authenticator = ClientSecretPostAuthenticator(
                auth.client_id, auth.get_client_secret(), auth.client_scope
            )
        elif auth_type == CLIENT_SECRET_BASIC:
            authenticator = ClientSecretBasicAuthenticator(
                auth.client_id, auth.get_client_secret(), auth.client_scope
            )
        elif auth_type == CLIENT_SECRET_JWT:
            authenticator = ClientSecretJWTAuthenticator(
                auth.client_id,
                auth.get_client_secret(),
                scope=auth.client_scope,
                issuer=auth.client_id,
                audience=self._metadata.issuer,
                signing_method=auth.token_signing_method,
            )
        elif auth_type == PRIVATE_KEY_JWT:
            key_reader = KeyReader(auth.private_key, auth.public_key, auth.key_password)
            authenticator = PrivateKeyJWTAuthenticator(
                auth.client_id,
                key_reader.get_private_key(),
                key_reader.get_public_key(),
                scope=auth.client_scope,
                issuer=auth.client_id,
                audience=self._metadata.issuer,
                signing_method=auth.token_signing_method,
            )
        elif auth_type in (TLS_CLIENT_AUTH, SELF_SIGNED_TLS_CLIENT_AUTH):
            authenticator = TLSClientAuthenticator(auth.client_id, auth.client_scope)
            return self._new_auth_client(self.mtls_token_endpoint, authenticator)
        else:
            raise UnknownAuthTypeError(auth_type)

        return self._new_auth_client(self.token_endpoint, authenticator)

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def title(self) -> str:
        return self._config.title

    @property
    def config(self) -> IDPConfig:
        return self._config

    @property
    def metadata(self) -> AuthorizationServerMetadata:
        return self._metadata

    @property
    def auth_client(self) -> AuthClient | None:
        return self._auth_client

    @property
    def issuer(self) -> str:
        return self._metadata.issuer

    @property
    def token_endpoint(self) -> str:
        return self._metadata.token_endpoint

    @property
    def mtls_token_endpoint(self) -> str:
        return self._metadata.mtls_token_endpoint

    @property
    def authorization_endpoint(self) -> str:
        return self._metadata.authorization_endpoint

    @property
    def supported_scopes(self) -> list[str]:
        return self._metadata.scopes_supported

    @property
    def supported_grant_types(self) -> list[str]:
        return self._metadata.grant_types_supported

    @property
    def supported_token_auth_methods(self) -> list[str]:
        return self._metadata.token_endpoint_auth_methods_supported

    @property
    def supported_response_types(self) -> list[str]:
        return self._metadata.response_types_supported

    @property
    def client_registration_endpoint(self) -> str:
        """Registration endpoint, using the mTLS alias under TLS client auth."""
        if self._config.uses_tls_client_auth():
            return self._metadata.mtls_registration_endpoint
        return self._metadata.registration_endpoint

    def _prepare_headers(self, auth_prefix: str, token: str) -> dict[str, str]:
        headers = dict(self._config.request_headers)
        headers[HDR_AUTHORIZATION] = f"{auth_prefix} {token}"
        headers[HDR_CONTENT_TYPE] = MIME_APPLICATION_JSON
        return headers

    def _apply_client_defaults(self, client: ClientMetadata) -> None:
        # Default the values from config if not set on the request
        if not client.scope:
            client.scope = [scope for scope in self._config.scope.split(" ") if scope]
        if not client.grant_types:
            client.grant_types = [self._config.grant_type]
        if not client.token_endpoint_auth_method:
            client.token_endpoint_auth_method = self._config.auth_method

    def _enrich_client_request(self, client: ClientMetadata) -> ClientMetadata:
        request = client.model_copy(deep=True)
        self._apply_client_defaults(request)
        request.extra_properties = {**request.extra_properties, **self._config.extra_properties}
        self._typed_idp.pre_process_client_request(request)
        derive_response_types(request)
        if not request.response_types and self._config.auth_response_type:
            request.response_types = [self._config.auth_response_type]
        return request

    async def _get_client_token(self) -> str:
        if self._auth_client is not None:
            return await self._auth_client.fetch_token(self._config.auth.use_cached_token)
        return self._config.auth.get_access_token()

    async def register_client(self, client: ClientMetadata) -> ClientMetadata:
        """Register an OAuth client with the IdP.

        The request is completed from the IdP configuration (scope, grant
        type, token auth method, extra properties) and adjusted for the
        vendor before it is sent.

        Args:
            client: Client to register; not modified

        Returns:
            Client metadata as returned by the IdP

        Raises:
            ClientValidationError: If the request is invalid (no network call made)
            TransportError: If the IdP cannot be reached
            TokenRequestError: If no management token can be obtained
            RegistrationError: If the IdP rejects the registration
        """
        auth_prefix = self._typed_idp.authorization_header_prefix()
        request = self._enrich_client_request(client)
        validate_redirect_uris(request)

        try:
            token = await self._get_client_token()
            response = await self._http_client.send(
                Request(
                    method=POST,
                    url=self.client_registration_endpoint,
                    headers=self._prepare_headers(auth_prefix, token),
                    query_params=self._config.query_params,
                    body=request.to_json().encode("utf-8"),
                )
            )
        except AuthzError as e:
            logger.error(
                f"Failed to register client with provider {self.name!r} "
                f"({_describe_client(request)}): {e}"
            )
            raise

        if response.status_code not in (200, 201):
            error = RegistrationError(
                f"error status code: {response.status_code}, body: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
            logger.error(
                f"Failed to register client with provider {self.name!r} "
                f"({_describe_client(request)}): {error}"
            )
            raise error

        try:
            registered = ClientMetadata.from_json(response.body)
        except ValueError as e:
            logger.error(
                f"Invalid registration response from provider {self.name!r} "
                f"({_describe_client(request)}): {e}"
            )
            raise RegistrationError(
                f"unable to decode registered client: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not self._config.auth.use_registration_token:
            registered.registration_access_token = ""

        logger.info(
            f"Registered client {registered.client_id!r} with provider {self.name!r} "
            f"({_describe_client(request)})"
        )
        return registered

    async def unregister_client(self, client_id: str, access_token: str = "") -> None:
        """Remove an OAuth client from the IdP.

        Args:
            client_id: ID of the client to delete
            access_token: Token for the call (default: a management token
                obtained like for registration)

        Raises:
            TransportError: If the IdP cannot be reached
            TokenRequestError: If no management token can be obtained
            UnregistrationError: If the IdP does not answer 204 No Content
        """
        auth_prefix = self._typed_idp.authorization_header_prefix()
        try:
            if not access_token:
                access_token = await self._get_client_token()
            response = await self._http_client.send(
                Request(
                    method=DELETE,
                    url=f"{self.client_registration_endpoint}/{client_id}",
                    headers=self._prepare_headers(auth_prefix, access_token),
                    query_params=self._config.query_params,
                )
            )
        except AuthzError as e:
            logger.error(
                f"Failed to unregister client {client_id!r} from provider {self.name!r}: {e}"
            )
            raise

        if response.status_code != 204:
            error = UnregistrationError(
                f"error status code: {response.status_code}, body: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
            logger.error(
                f"Failed to unregister client {client_id!r} from provider {self.name!r}: {error}"
            )
            raise error

        logger.info(f"Unregistered client {client_id!r} from provider {self.name!r}")

    async def validate(self) -> None:
        """Check that the configured credentials can obtain a token.

        Raises:
            TransportError: If the token endpoint cannot be reached
            TokenRequestError: If the credentials are rejected
        """
        await self._get_client_token()
