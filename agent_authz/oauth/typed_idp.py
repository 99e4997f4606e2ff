"""Vendor-specific behaviour of identity providers.

The registration algorithm in Provider is the same for every IdP; the
differences (authorization header prefix, payload constraints) live here.
"""

from abc import ABC, abstractmethod
from typing import Any

from agent_authz.core.config import IDP_TYPE_OKTA
from agent_authz.utils.errors import ExtraPropertiesValidationError

from .client_metadata import ClientMetadata
from .constants import AUTH_RESPONSE_TOKEN, GRANT_TYPE_CLIENT_CREDENTIALS

# Okta extension properties
OKTA_APPLICATION_TYPE = "application_type"
OKTA_PKCE_REQUIRED = "pkce_required"
OKTA_APP_TYPE_SERVICE = "service"
OKTA_APP_TYPE_WEB = "web"
OKTA_APP_TYPE_BROWSER = "browser"
OKTA_AUTH_METHOD_NONE = "none"


class TypedIDP(ABC):
    """Hooks that adapt registration requests to one IdP vendor."""

    @abstractmethod
    def authorization_header_prefix(self) -> str:
        """Scheme used in the Authorization header of registration calls."""
        pass

    @abstractmethod
    def pre_process_client_request(self, client: ClientMetadata) -> None:
        """Adjust an outgoing registration request in place."""
        pass

    @abstractmethod
    def validate_extra_properties(self, extra_properties: dict[str, Any]) -> None:
        """Check configured extra properties.

        Raises:
            ExtraPropertiesValidationError: If the properties conflict
        """
        pass


class GenericIDP(TypedIDP):
    """Standards-only IdP (generic OIDC, Keycloak)."""

    def authorization_header_prefix(self) -> str:
        return "Bearer"

    def pre_process_client_request(self, client: ClientMetadata) -> None:
        pass

    def validate_extra_properties(self, extra_properties: dict[str, Any]) -> None:
        pass


def _is_pkce_required(extra_properties: dict[str, Any]) -> bool:
    value = extra_properties.get(OKTA_PKCE_REQUIRED)
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


class OktaIDP(TypedIDP):
    """Okta dynamic client registration.

    Okta authenticates its management API with "SSWS <token>" and requires an
    application_type consistent with the requested grant types and PKCE.
    """

    def authorization_header_prefix(self) -> str:
        return "SSWS"

    def validate_extra_properties(self, extra_properties: dict[str, Any]) -> None:
        if not _is_pkce_required(extra_properties):
            return
        app_type = extra_properties.get(OKTA_APPLICATION_TYPE)
        if app_type is not None and app_type != OKTA_APP_TYPE_BROWSER:
            raise ExtraPropertiesValidationError(
                f"{OKTA_PKCE_REQUIRED} requires {OKTA_APPLICATION_TYPE} "
                f"'{OKTA_APP_TYPE_BROWSER}', got '{app_type}'"
            )

    def pre_process_client_request(self, client: ClientMetadata) -> None:
        extra_properties = dict(client.extra_properties)
        pkce_required = _is_pkce_required(extra_properties)

        if OKTA_APPLICATION_TYPE not in extra_properties:
            app_type = OKTA_APP_TYPE_SERVICE
            for grant_type in client.grant_types:
                if grant_type != GRANT_TYPE_CLIENT_CREDENTIALS:
                    app_type = OKTA_APP_TYPE_BROWSER if pkce_required else OKTA_APP_TYPE_WEB
                    break
            extra_properties[OKTA_APPLICATION_TYPE] = app_type
        client.extra_properties = extra_properties

        if GRANT_TYPE_CLIENT_CREDENTIALS in client.grant_types and not client.response_types:
            client.response_types = [AUTH_RESPONSE_TOKEN]

        if pkce_required:
            client.token_endpoint_auth_method = OKTA_AUTH_METHOD_NONE


def get_typed_idp(idp_type: str) -> TypedIDP:
    """Return the vendor behaviour for an IdP type; unknown types are generic."""
    if idp_type == IDP_TYPE_OKTA:
        return OktaIDP()
    return GenericIDP()
