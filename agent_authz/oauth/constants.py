"""OAuth 2.0 protocol constants shared across the package."""

# Grant types
GRANT_TYPE_CLIENT_CREDENTIALS = "client_credentials"
GRANT_TYPE_AUTHORIZATION_CODE = "authorization_code"
GRANT_TYPE_IMPLICIT = "implicit"
GRANT_TYPE_REFRESH_TOKEN = "refresh_token"

# Response types
AUTH_RESPONSE_CODE = "code"
AUTH_RESPONSE_TOKEN = "token"

# Token request form fields
META_GRANT_TYPE = "grant_type"
META_CLIENT_ID = "client_id"
META_CLIENT_SECRET = "client_secret"
META_CLIENT_ASSERTION_TYPE = "client_assertion_type"
META_CLIENT_ASSERTION = "client_assertion"
META_SCOPE = "scope"

ASSERTION_TYPE_JWT = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"

# Headers
HDR_AUTHORIZATION = "Authorization"
HDR_CONTENT_TYPE = "Content-Type"
MIME_APPLICATION_JSON = "application/json"
MIME_APPLICATION_FORM_URLENCODED = "application/x-www-form-urlencoded"

DEFAULT_SERVER_NAME = "OAuth server"

# Certificate metadata used to identify tls_client_auth clients
TLS_CLIENT_AUTH_SUBJECT_DN = "tls_client_auth_subject_dn"
TLS_CLIENT_AUTH_SAN_DNS = "tls_client_auth_san_dns"
TLS_CLIENT_AUTH_SAN_EMAIL = "tls_client_auth_san_email"
TLS_CLIENT_AUTH_SAN_IP = "tls_client_auth_san_ip"
TLS_CLIENT_AUTH_SAN_URI = "tls_client_auth_san_uri"

# JWS algorithms accepted for client assertions
SIGNING_METHOD_RS256 = "RS256"
SIGNING_METHOD_RS384 = "RS384"
SIGNING_METHOD_RS512 = "RS512"
SIGNING_METHOD_ES256 = "ES256"
SIGNING_METHOD_ES384 = "ES384"
SIGNING_METHOD_ES512 = "ES512"
SIGNING_METHOD_PS256 = "PS256"
SIGNING_METHOD_PS384 = "PS384"
SIGNING_METHOD_PS512 = "PS512"
SIGNING_METHOD_HS256 = "HS256"
SIGNING_METHOD_HS384 = "HS384"
SIGNING_METHOD_HS512 = "HS512"

ASYMMETRIC_SIGNING_METHODS = frozenset(
    {
        SIGNING_METHOD_RS256,
        SIGNING_METHOD_RS384,
        SIGNING_METHOD_RS512,
        SIGNING_METHOD_ES256,
        SIGNING_METHOD_ES384,
        SIGNING_METHOD_ES512,
        SIGNING_METHOD_PS256,
        SIGNING_METHOD_PS384,
        SIGNING_METHOD_PS512,
    }
)
HMAC_SIGNING_METHODS = frozenset(
    {SIGNING_METHOD_HS256, SIGNING_METHOD_HS384, SIGNING_METHOD_HS512}
)

# JWT bearer assertions are valid for this many seconds
ASSERTION_LIFETIME_SECONDS = 60
