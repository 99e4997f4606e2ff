"""Core configuration, transport and caching."""

from .cache import KeyedCache
from .config import IDPAuthConfig, IDPConfig, Settings, TLSConfig, parse_idp_configs
from .http import HTTPClient, Request, Response

__all__ = [
    "HTTPClient",
    "IDPAuthConfig",
    "IDPConfig",
    "KeyedCache",
    "Request",
    "Response",
    "Settings",
    "TLSConfig",
    "parse_idp_configs",
]
