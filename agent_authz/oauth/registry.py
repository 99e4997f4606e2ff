"""Registry of configured IdP providers.

Providers are stored once under their name and reachable through secondary
keys derived from their discovered metadata, so a token or an incoming
request can be traced back to the IdP that issued it.
"""

import asyncio
import logging

from agent_authz.core.cache import KeyedCache
from agent_authz.core.config import IDPConfig, TLSConfig
from agent_authz.core.http import DEFAULT_TIMEOUT, HTTPClient
from agent_authz.utils.errors import UnrecognizedProviderError

from .provider import Provider

logger = logging.getLogger(__name__)

ISSUER_KEY_PREFIX = "issuer:"
TOKEN_ENDPOINT_KEY_PREFIX = "tokenEp:"
MTLS_TOKEN_ENDPOINT_KEY_PREFIX = "mtlsTokenEp:"
AUTH_ENDPOINT_KEY_PREFIX = "authEp:"
METADATA_URL_KEY_PREFIX = "metadataUrl:"


class ProviderRegistry:
    """Multi-indexed store of Providers.

    Registration is append-only: a provider name that is already present is
    left untouched. Registrations are serialized, so concurrent calls for the
    same name share one provider.
    """

    def __init__(self):
        self._providers = KeyedCache()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._providers)

    async def register_provider(
        self,
        idp_config: IDPConfig,
        tls_config: TLSConfig | None = None,
        proxy_url: str | None = None,
        client_timeout: float = DEFAULT_TIMEOUT,
        *,
        http_client: HTTPClient | None = None,
    ) -> Provider:
        """Create a provider for an IdP and index it.

        Args:
            idp_config: Validated IdP configuration
            tls_config: Default TLS settings for the IdP connection
            proxy_url: Optional proxy for IdP calls
            client_timeout: Timeout in seconds for every IdP call
            http_client: Transport override passed to the provider

        Returns:
            The registered provider (the existing one for a known name)

        Raises:
            AuthzError: If the provider cannot be created
        """
        async with self._lock:
            if self._providers.has(idp_config.name):
                logger.debug(f"Skipping registration of the same IdP: {idp_config.name}")
                return self._providers.get(idp_config.name)

            provider = await Provider.create(
                idp_config,
                tls_config=tls_config,
                proxy_url=proxy_url,
                client_timeout=client_timeout,
                http_client=http_client,
            )

            name = provider.name
            self._providers.set(name, provider)
            self._providers.set_secondary_key(name, ISSUER_KEY_PREFIX + provider.issuer)
            self._providers.set_secondary_key(
                name, TOKEN_ENDPOINT_KEY_PREFIX + provider.token_endpoint
            )
            self._providers.set_secondary_key(
                name, METADATA_URL_KEY_PREFIX + idp_config.metadata_url
            )
            if provider.mtls_token_endpoint:
                self._providers.set_secondary_key(
                    name, MTLS_TOKEN_ENDPOINT_KEY_PREFIX + provider.mtls_token_endpoint
                )
            self._providers.set_secondary_key(
                name, AUTH_ENDPOINT_KEY_PREFIX + provider.authorization_endpoint
            )

            logger.debug(
                f"Registered IdP provider {name!r} (issuer: {provider.issuer}, "
                f"token-endpoint: {provider.token_endpoint}, "
                f"authorization-endpoint: {provider.authorization_endpoint})"
            )
            return provider

    @staticmethod
    def _as_provider(value: object, key: str) -> Provider:
        if not isinstance(value, Provider):
            raise UnrecognizedProviderError(key)
        return value

    def _get_by_secondary_key(self, key: str) -> Provider:
        try:
            value = self._providers.get_by_secondary_key(key)
        except KeyError:
            raise UnrecognizedProviderError(key) from None
        return self._as_provider(value, key)

    def get_provider_by_name(self, name: str) -> Provider:
        """Look up a provider by IdP name.

        Raises:
            UnrecognizedProviderError: If no provider has that name
        """
        try:
            value = self._providers.get(name)
        except KeyError:
            raise UnrecognizedProviderError(name) from None
        return self._as_provider(value, name)

    def get_provider_by_issuer(self, issuer: str) -> Provider:
        return self._get_by_secondary_key(ISSUER_KEY_PREFIX + issuer)

    def get_provider_by_token_endpoint(self, token_endpoint: str) -> Provider:
        """Look up a provider by token endpoint, trying mTLS aliases first."""
        try:
            return self._get_by_secondary_key(MTLS_TOKEN_ENDPOINT_KEY_PREFIX + token_endpoint)
        except UnrecognizedProviderError:
            return self._get_by_secondary_key(TOKEN_ENDPOINT_KEY_PREFIX + token_endpoint)

    def get_provider_by_authorization_endpoint(self, auth_endpoint: str) -> Provider:
        return self._get_by_secondary_key(AUTH_ENDPOINT_KEY_PREFIX + auth_endpoint)

    def get_provider_by_metadata_url(self, metadata_url: str) -> Provider:
        return self._get_by_secondary_key(METADATA_URL_KEY_PREFIX + metadata_url)
