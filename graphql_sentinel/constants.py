"""Shared constants for GraphQL Sentinel."""

SERVER_NAME = "GraphQL Sentinel"
SERVER_VERSION = "0.1.0"

# Network defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 4000

# Routing defaults
DEFAULT_GRAPHQL_PATH = "/graphql"
HEALTH_CHECK_PATH = "/.well-known/apollo/server-health"
HEALTH_CHECK_MEDIA_TYPE = "application/health+json"

# Environment switch; "production" turns off debug, introspection and playground
ENV_VAR = "GRAPHQL_SENTINEL_ENV"
CONFIG_ENV_VAR = "GRAPHQL_SENTINEL_CONFIG"

# Body parser limits (bytes)
DEFAULT_JSON_LIMIT = 1024 * 1024
DEFAULT_FORM_LIMIT = 56 * 1024
DEFAULT_TEXT_LIMIT = 1024 * 1024

# Multipart upload limits (bytes)
DEFAULT_MAX_FIELD_SIZE = 1_000_000

# GraphQL Playground assets
PLAYGROUND_VERSION = "1.7.42"
PLAYGROUND_CDN_URL = "//cdn.jsdelivr.net/npm"

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"
