"""Configuration models and loading."""

from graphql_sentinel.config.loader import find_config_file, load_sentinel_config
from graphql_sentinel.config.schema import (
    BodyParserOptions,
    CorsOptions,
    FileUploadOptions,
    GraphQLSettings,
    PlaygroundSettings,
    RegistrationConfig,
    SentinelConfig,
)

__all__ = [
    "BodyParserOptions",
    "CorsOptions",
    "FileUploadOptions",
    "GraphQLSettings",
    "PlaygroundSettings",
    "RegistrationConfig",
    "SentinelConfig",
    "find_config_file",
    "load_sentinel_config",
]
