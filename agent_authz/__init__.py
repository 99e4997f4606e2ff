"""Agent Authz - OAuth client authentication and IdP integration for agents."""

__version__ = "0.1.0"

from .core.config import IDPConfig, Settings
from .core.context import AuthzContext
from .oauth import (
    AuthClient,
    ClientBuilder,
    ClientMetadata,
    Provider,
    ProviderRegistry,
)
from .utils.errors import AuthzError
from .utils.logging_config import setup_logging

__all__ = [
    "AuthClient",
    "AuthzContext",
    "AuthzError",
    "ClientBuilder",
    "ClientMetadata",
    "IDPConfig",
    "Provider",
    "ProviderRegistry",
    "Settings",
    "setup_logging",
]
