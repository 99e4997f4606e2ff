"""Application context for the authorization engine.

AuthzContext owns the settings and the provider registry an agent uses for
the lifetime of the process.
"""

import logging
from dataclasses import dataclass, field

from agent_authz.core.config import Settings
from agent_authz.core.http import HTTPClient
from agent_authz.oauth.registry import ProviderRegistry
from agent_authz.utils.errors import AuthzError
from agent_authz.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class AuthzContext:
    """Settings plus the shared provider registry.

    Example:
        context = await AuthzContext.from_settings(Settings())
        provider = context.registry.get_provider_by_name("okta")
    """

    settings: Settings
    registry: ProviderRegistry = field(default_factory=ProviderRegistry)

    @classmethod
    async def from_settings(
        cls,
        settings: Settings | None = None,
        http_client: HTTPClient | None = None,
        configure_logging: bool = False,
    ) -> "AuthzContext":
        """Create a context and register every configured IdP.

        An IdP that fails to register is logged and skipped; credential
        requests for it cannot be served until the agent restarts.

        Args:
            settings: Engine settings (default: loaded from the environment)
            http_client: Transport override shared by all providers
            configure_logging: Apply settings.log_level and settings.log_file
                through setup_logging() before registering; leave False when
                the embedding agent configures logging itself

        Returns:
            Initialized AuthzContext
        """
        settings = settings or Settings()
        if configure_logging:
            setup_logging(level=settings.log_level, log_file=settings.log_file)
        context = cls(settings=settings)

        for idp in settings.idp:
            try:
                await context.registry.register_provider(
                    idp,
                    tls_config=settings.tls,
                    proxy_url=settings.proxy_url,
                    client_timeout=settings.client_timeout,
                    http_client=http_client,
                )
            except AuthzError as e:
                logger.error(
                    f"Unable to register external IdP provider {idp.name!r} "
                    f"(type: {idp.type}, metadata-url: {idp.metadata_url}), "
                    f"any credential request to the IdP will not be processed: {e}"
                )

        logger.info(f"Registered {len(context.registry)} of {len(settings.idp)} IdP providers")
        return context
