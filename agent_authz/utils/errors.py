"""Error types for the authorization engine."""


class AuthzError(Exception):
    """Base exception for agent authorization errors."""

    pass


# Configuration errors
class ConfigurationError(AuthzError):
    """Raised when configuration is missing or invalid."""

    pass


class UnknownAuthTypeError(ConfigurationError):
    """Raised when an IdP auth type has no matching authenticator."""

    def __init__(self, auth_type: str):
        super().__init__(f"unknown IdP auth type: {auth_type!r}")
        self.auth_type = auth_type


class MissingAuthenticatorError(ConfigurationError):
    """Raised when an auth client is created without an authenticator."""

    def __init__(self):
        super().__init__("unable to create client, no authenticator configured")


class KeyReadError(ConfigurationError):
    """Raised when a private or public key cannot be loaded."""

    pass


# Transport errors
class TransportError(AuthzError):
    """Raised when the HTTP round trip itself fails (connection, timeout)."""

    pass


# Protocol errors
class ProtocolError(AuthzError):
    """Raised when an IdP answers with an unexpected status or body.

    The status code and raw response body are kept for diagnosis.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MetadataFetchError(ProtocolError):
    """Raised when authorization server metadata cannot be fetched or decoded."""

    pass


class TokenRequestError(ProtocolError):
    """Raised when the token endpoint rejects a token request."""

    def __init__(self, server_name: str, status_code: int, body: str = ""):
        super().__init__(
            f"bad response from {server_name}: {status_code}",
            status_code=status_code,
            body=body,
        )
        self.server_name = server_name


class RegistrationError(ProtocolError):
    """Raised when client registration fails."""

    pass


class UnregistrationError(ProtocolError):
    """Raised when client unregistration fails."""

    pass


# Validation errors
class ValidationError(AuthzError):
    """Raised when a request is rejected before it reaches the network."""

    pass


class ClientValidationError(ValidationError):
    """Raised when client metadata is incomplete or inconsistent."""

    pass


class ExtraPropertiesValidationError(ValidationError):
    """Raised when IdP-specific extra properties conflict."""

    pass


# Registry errors
class UnrecognizedProviderError(AuthzError):
    """Raised when no provider is registered under a lookup key."""

    def __init__(self, key: str):
        super().__init__(f"unrecognized provider: {key}")
        self.key = key
