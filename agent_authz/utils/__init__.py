"""Utility modules for the authorization engine."""

from .errors import (
    AuthzError,
    ClientValidationError,
    ConfigurationError,
    ExtraPropertiesValidationError,
    KeyReadError,
    MetadataFetchError,
    MissingAuthenticatorError,
    ProtocolError,
    RegistrationError,
    TokenRequestError,
    TransportError,
    UnknownAuthTypeError,
    UnrecognizedProviderError,
    UnregistrationError,
    ValidationError,
)
from .logging_config import setup_logging

__all__ = [
    "AuthzError",
    "ClientValidationError",
    "ConfigurationError",
    "ExtraPropertiesValidationError",
    "KeyReadError",
    "MetadataFetchError",
    "MissingAuthenticatorError",
    "ProtocolError",
    "RegistrationError",
    "TokenRequestError",
    "TransportError",
    "UnknownAuthTypeError",
    "UnrecognizedProviderError",
    "UnregistrationError",
    "ValidationError",
    "setup_logging",
]
