"""Configuration management for the authorization engine and external IdPs."""

import json
import ssl
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Authentication types an agent can use against an IdP
ACCESS_TOKEN = "accessToken"
CLIENT = "client"
CLIENT_SECRET_BASIC = "client_secret_basic"
CLIENT_SECRET_POST = "client_secret_post"
CLIENT_SECRET_JWT = "client_secret_jwt"
PRIVATE_KEY_JWT = "private_key_jwt"
TLS_CLIENT_AUTH = "tls_client_auth"
SELF_SIGNED_TLS_CLIENT_AUTH = "self_signed_tls_client_auth"

VALID_IDP_AUTH_TYPES = frozenset(
    {
        ACCESS_TOKEN,
        CLIENT,
        CLIENT_SECRET_BASIC,
        CLIENT_SECRET_POST,
        CLIENT_SECRET_JWT,
        PRIVATE_KEY_JWT,
        TLS_CLIENT_AUTH,
        SELF_SIGNED_TLS_CLIENT_AUTH,
    }
)
CLIENT_SECRET_AUTH_TYPES = frozenset(
    {CLIENT, CLIENT_SECRET_BASIC, CLIENT_SECRET_POST, CLIENT_SECRET_JWT}
)
TLS_AUTH_TYPES = frozenset({TLS_CLIENT_AUTH, SELF_SIGNED_TLS_CLIENT_AUTH})

# IdP flavours
IDP_TYPE_GENERIC = "generic"
IDP_TYPE_OKTA = "okta"
IDP_TYPE_KEYCLOAK = "keycloak"

DEFAULT_CLIENT_SCOPES = "resource.READ resource.WRITE"
DEFAULT_GRANT_TYPE = "client_credentials"
DEFAULT_AUTH_METHOD = CLIENT_SECRET_BASIC
DEFAULT_AUTH_RESPONSE_TYPE = "token"

CONFIG_PATH = "agentFeatures.idp"


def _bad_config(field: str) -> ValueError:
    return ValueError(f"invalid configuration value for {CONFIG_PATH}.{field}")


def _parse_json_mapping(value: Any) -> Any:
    """Accept a mapping or a JSON-encoded mapping (as set in agent env files)."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return {}
        return json.loads(value)
    return value


def _require_file(path: Path | None, field: str, description: str) -> None:
    if path is None:
        raise _bad_config(field)
    if not path.is_file():
        raise ValueError(f"{description} file not found for {CONFIG_PATH}.{field}: {path}")


class TLSConfig(BaseModel):
    """TLS settings for connections to an IdP."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    insecure_skip_verify: bool = Field(default=False, alias="insecureSkipVerify")
    root_ca_cert_path: Path | None = Field(default=None, alias="rootCACertPath")
    client_cert_path: Path | None = Field(default=None, alias="clientCertPath")
    client_key_path: Path | None = Field(default=None, alias="clientKeyPath")

    def build_ssl_context(self) -> ssl.SSLContext:
        """Build the SSL context handed to the HTTP transport.

        The client certificate pair, when configured, is what the IdP sees
        for tls_client_auth and self_signed_tls_client_auth.
        """
        cafile = str(self.root_ca_cert_path) if self.root_ca_cert_path else None
        context = ssl.create_default_context(cafile=cafile)
        if self.insecure_skip_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if self.client_cert_path and self.client_key_path:
            context.load_cert_chain(
                certfile=str(self.client_cert_path),
                keyfile=str(self.client_key_path),
            )
        return context


class IDPAuthConfig(BaseModel):
    """Credentials the agent uses to talk to an IdP's registration API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    type: str = Field(..., description="Authentication mechanism, e.g. accessToken or client")
    request_headers: dict[str, str] = Field(default_factory=dict)
    query_params: dict[str, str] = Field(default_factory=dict)
    access_token: SecretStr | None = Field(
        default=None, description="Initial access token / admin API token"
    )
    client_id: str = ""
    client_secret: SecretStr | None = None
    client_scope: str = ""
    private_key: Path | None = None
    public_key: Path | None = None
    key_password: Path | None = Field(
        default=None, description="File holding the private key password"
    )
    token_signing_method: str = ""
    use_cached_token: bool = True
    use_registration_token: bool = False

    @field_validator("request_headers", "query_params", mode="before")
    @classmethod
    def parse_key_value_pairs(cls, v: Any) -> Any:
        return _parse_json_mapping(v)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in VALID_IDP_AUTH_TYPES:
            raise _bad_config("auth.type")
        return v

    @model_validator(mode="after")
    def validate_credentials(self) -> "IDPAuthConfig":
        if self.type == ACCESS_TOKEN:
            if not self.get_access_token():
                raise _bad_config("auth.accessToken")
            return self

        if not self.client_id:
            raise _bad_config("auth.clientId")

        if self.type in CLIENT_SECRET_AUTH_TYPES:
            if not self.get_client_secret():
                raise _bad_config("auth.clientSecret")
        elif self.type == PRIVATE_KEY_JWT:
            _require_file(self.private_key, "auth.privateKey", "private key")
            _require_file(self.public_key, "auth.publicKey", "public key")
        return self

    def get_access_token(self) -> str:
        return self.access_token.get_secret_value() if self.access_token else ""

    def get_client_secret(self) -> str:
        return self.client_secret.get_secret_value() if self.client_secret else ""


class IDPConfig(BaseModel):
    """Configuration of one external identity provider."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str
    title: str = ""
    type: str = IDP_TYPE_GENERIC
    metadata_url: str = ""
    auth: IDPAuthConfig
    scope: str = Field(
        default=DEFAULT_CLIENT_SCOPES,
        description="Default space-separated scopes for registered clients",
    )
    grant_type: str = DEFAULT_GRANT_TYPE
    auth_method: str = DEFAULT_AUTH_METHOD
    auth_response_type: str = DEFAULT_AUTH_RESPONSE_TYPE
    extra_properties: dict[str, Any] = Field(default_factory=dict)
    request_headers: dict[str, str] = Field(default_factory=dict)
    query_params: dict[str, str] = Field(default_factory=dict)
    tls: TLSConfig | None = Field(default=None, alias="ssl")

    @field_validator("extra_properties", "request_headers", "query_params", mode="before")
    @classmethod
    def parse_mappings(cls, v: Any) -> Any:
        return _parse_json_mapping(v)

    @model_validator(mode="after")
    def validate_idp(self) -> "IDPConfig":
        if not self.name:
            raise _bad_config("name")
        if not self.title:
            self.title = self.name
        if not self.metadata_url:
            raise _bad_config("metadataUrl")

        if self.auth.type in TLS_AUTH_TYPES:
            if self.tls is None:
                raise _bad_config("ssl.clientCertPath")
            _require_file(self.tls.client_cert_path, "ssl.clientCertPath", "tls client certificate")
            _require_file(self.tls.client_key_path, "ssl.clientKeyPath", "tls client key")
        return self

    def uses_tls_client_auth(self) -> bool:
        return self.auth.type in TLS_AUTH_TYPES


def parse_idp_configs(entries: Iterable[Mapping[str, Any]]) -> dict[str, IDPConfig]:
    """Validate raw IdP entries and index them by name.

    Args:
        entries: Raw IdP mappings, as read from the agent configuration

    Returns:
        Dict of IdP name to validated IDPConfig

    Raises:
        pydantic.ValidationError: If any entry is invalid
    """
    configs: dict[str, IDPConfig] = {}
    for entry in entries:
        idp = IDPConfig.model_validate(entry)
        configs[idp.name] = idp
    return configs


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_AUTHZ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Path | None = Field(default=None, description="Optional log file")

    # Transport
    client_timeout: float = Field(
        default=30.0, gt=0, description="Timeout in seconds for every IdP call"
    )
    proxy_url: str | None = Field(default=None, description="Proxy for IdP calls")
    tls: TLSConfig = Field(default_factory=TLSConfig, description="Default TLS settings")

    # External identity providers
    idp: list[IDPConfig] = Field(default_factory=list, description="External IdPs")

    @field_validator("proxy_url")
    @classmethod
    def validate_proxy_url(cls, v: str | None) -> str | None:
        """Validate that the proxy URL uses a supported scheme."""
        if not v:
            return None
        if not v.startswith(("http://", "https://", "socks5://")):
            raise ValueError("Proxy URL must start with http://, https:// or socks5://")
        return v
