"""Pydantic configuration models for GraphQL Sentinel.

Covers both the per-registration options accepted by
``GraphQLServer.apply_middleware`` and the YAML file layout read by
:mod:`graphql_sentinel.config.loader`.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from graphql_sentinel.constants import (
    DEFAULT_FORM_LIMIT,
    DEFAULT_GRAPHQL_PATH,
    DEFAULT_HOST,
    DEFAULT_JSON_LIMIT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_FIELD_SIZE,
    DEFAULT_PORT,
    DEFAULT_TEXT_LIMIT,
    PLAYGROUND_CDN_URL,
    PLAYGROUND_VERSION,
)

HealthCheckCallback = Callable[[Any], Awaitable[Any]]


def _check_path(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.startswith("/"):
        raise ValueError(f"path must start with '/', got {value!r}")
    return value


# ── Middleware options ──────────────────────────────────────────────────


class CorsOptions(BaseModel):
    """CORS policy applied on the GraphQL path."""

    allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    allow_methods: List[str] = Field(
        default_factory=lambda: ["GET", "HEAD", "PUT", "POST", "DELETE", "PATCH"]
    )
    allow_headers: List[str] = Field(default_factory=lambda: ["*"])
    allow_credentials: bool = False
    allow_origin_regex: Optional[str] = None
    expose_headers: List[str] = Field(default_factory=list)
    max_age: int = Field(default=600, ge=0)


class BodyParserOptions(BaseModel):
    """Request body parsing policy applied on the GraphQL path."""

    enable_types: List[Literal["json", "form", "text"]] = Field(
        default_factory=lambda: ["json", "form"]
    )
    json_limit: int = Field(default=DEFAULT_JSON_LIMIT, gt=0, description="Bytes.")
    form_limit: int = Field(default=DEFAULT_FORM_LIMIT, gt=0, description="Bytes.")
    text_limit: int = Field(default=DEFAULT_TEXT_LIMIT, gt=0, description="Bytes.")
    strict: bool = Field(
        default=True,
        description="Only accept JSON objects and arrays as top-level values.",
    )


class FileUploadOptions(BaseModel):
    """Limits for GraphQL multipart requests. ``None`` means unlimited."""

    max_field_size: int = Field(default=DEFAULT_MAX_FIELD_SIZE, gt=0)
    max_file_size: Optional[int] = Field(default=None, gt=0)
    max_files: Optional[int] = Field(default=None, ge=0)


class PlaygroundSettings(BaseModel):
    """GraphQL Playground page options."""

    version: str = PLAYGROUND_VERSION
    cdn_url: str = PLAYGROUND_CDN_URL
    title: str = "GraphQL Playground"
    favicon_url: Optional[str] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    tabs: List[Dict[str, Any]] = Field(default_factory=list)


# ── Registration ────────────────────────────────────────────────────────


class RegistrationConfig(BaseModel):
    """Options for one ``apply_middleware`` call, with defaults normalised."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: str = DEFAULT_GRAPHQL_PATH
    playground_path: Optional[str] = None
    cors: Union[bool, CorsOptions] = True
    body_parser_config: Union[bool, BodyParserOptions] = True
    disable_health_check: bool = False
    on_health_check: Optional[HealthCheckCallback] = None

    @field_validator("path", "playground_path")
    @classmethod
    def _validate_paths(cls, v: Optional[str]) -> Optional[str]:
        return _check_path(v)

    @property
    def explorer_path(self) -> str:
        """The explorer path, defaulting to the execution path."""
        return self.playground_path or self.path


# ── Config file ─────────────────────────────────────────────────────────


class ServerSettings(BaseModel):
    """Network settings for the Uvicorn server."""

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)


class GraphQLSettings(BaseModel):
    """GraphQL endpoint settings."""

    schema_ref: Optional[str] = Field(
        default=None,
        alias="schema",
        description="Schema location as 'module:attribute'.",
    )
    path: str = DEFAULT_GRAPHQL_PATH
    playground_path: Optional[str] = None
    subscriptions_path: Optional[str] = None
    debug: Optional[bool] = None
    introspection: Optional[bool] = None
    playground: Optional[Union[bool, PlaygroundSettings]] = None
    uploads: Union[bool, FileUploadOptions] = True
    cors: Union[bool, CorsOptions] = True
    body_parser: Union[bool, BodyParserOptions] = True
    disable_health_check: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("path", "playground_path", "subscriptions_path")
    @classmethod
    def _validate_paths(cls, v: Optional[str]) -> Optional[str]:
        return _check_path(v)

    def registration_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``GraphQLServer.apply_middleware``."""
        return {
            "path": self.path,
            "playground_path": self.playground_path,
            "cors": self.cors,
            "body_parser_config": self.body_parser,
            "disable_health_check": self.disable_health_check,
        }


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = DEFAULT_LOG_LEVEL

    @field_validator("level", mode="before")
    @classmethod
    def _normalise_level(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class SentinelConfig(BaseModel):
    """Top-level configuration file model."""

    server: ServerSettings = Field(default_factory=ServerSettings)
    graphql: GraphQLSettings = Field(default_factory=GraphQLSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
