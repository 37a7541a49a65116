"""Framework-independent GraphQL server state.

Holds the schema, the request options shared by every stage (error
formatter and debug flag), the upload and playground configuration and
the startup lifecycle. Framework integrations subclass it and declare
what they support through a :class:`ServerCapabilities` record.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from graphql import GraphQLSchema, validate_schema

from graphql_sentinel.config.env import is_production
from graphql_sentinel.config.schema import FileUploadOptions, PlaygroundSettings
from graphql_sentinel.errors import ConfigurationError, ErrorFormatter
from graphql_sentinel.middleware.chain import RequestContext

logger = logging.getLogger(__name__)

ContextFactory = Callable[[RequestContext], Any]
StartupHook = Callable[[], Any]


@dataclass(frozen=True)
class ServerCapabilities:
    """What an integration can serve beyond plain GraphQL over HTTP."""

    uploads: bool = False
    subscriptions: bool = False


@dataclass(frozen=True)
class RequestOptions:
    """Settings every stage formats errors with."""

    format_error: Optional[ErrorFormatter] = None
    debug: bool = False


@dataclass
class GraphQLOptions:
    """Options for executing one request."""

    schema: GraphQLSchema
    context_value: Any = None
    root_value: Any = None
    format_error: Optional[ErrorFormatter] = None
    debug: bool = False
    introspection: bool = True
    validation_rules: List[Any] = field(default_factory=list)
    middleware: Optional[List[Any]] = None


def _uploads_config(uploads: Union[bool, FileUploadOptions, Mapping[str, Any], None]) -> Optional[FileUploadOptions]:
    if uploads is None or uploads is False:
        return None
    if uploads is True:
        return FileUploadOptions()
    if isinstance(uploads, FileUploadOptions):
        return uploads
    return FileUploadOptions.model_validate(uploads)


def _playground_options(
    playground: Union[bool, PlaygroundSettings, Mapping[str, Any], None],
) -> Optional[PlaygroundSettings]:
    if playground is None:
        playground = not is_production()
    if playground is False:
        return None
    if playground is True:
        return PlaygroundSettings()
    if isinstance(playground, PlaygroundSettings):
        return playground
    return PlaygroundSettings.model_validate(playground)


class GraphQLServerBase:
    """Shared GraphQL server behaviour.

    Parameters
    ----------
    schema:
        The executable schema.
    context:
        Context value, or a callable building it from the
        :class:`RequestContext` (may be async). Defaults to
        ``{"request": <starlette request>}``.
    debug / introspection / playground:
        ``None`` enables them unless ``GRAPHQL_SENTINEL_ENV=production``.
    uploads:
        ``True``, ``False`` or :class:`FileUploadOptions`; honoured only
        when the integration supports uploads.
    on_startup:
        Hooks run by :meth:`will_start` after the schema is validated.
    """

    def __init__(
        self,
        schema: GraphQLSchema,
        *,
        context: Union[ContextFactory, Any] = None,
        root_value: Any = None,
        format_error: Optional[ErrorFormatter] = None,
        debug: Optional[bool] = None,
        introspection: Optional[bool] = None,
        playground: Union[bool, PlaygroundSettings, Mapping[str, Any], None] = None,
        uploads: Union[bool, FileUploadOptions, Mapping[str, Any]] = True,
        subscriptions_path: Optional[str] = None,
        validation_rules: Optional[Sequence[Any]] = None,
        middleware: Optional[List[Any]] = None,
        on_startup: Sequence[StartupHook] = (),
        capabilities: ServerCapabilities = ServerCapabilities(),
    ) -> None:
        if not isinstance(schema, GraphQLSchema):
            raise TypeError(f"Expected a GraphQLSchema, got {type(schema).__name__}")

        production = is_production()
        self.schema = schema
        self.capabilities = capabilities
        self.context = context
        self.root_value = root_value
        self.introspection = (not production) if introspection is None else introspection
        self.request_options = RequestOptions(
            format_error=format_error,
            debug=(not production) if debug is None else debug,
        )
        self.validation_rules = list(validation_rules or ())
        self.middleware = middleware
        self.on_startup = list(on_startup)

        self.uploads_config: Optional[FileUploadOptions] = None
        if capabilities.uploads:
            self.uploads_config = _uploads_config(uploads)
        elif uploads:
            logger.debug("Uploads requested but %s does not support them.", type(self).__name__)

        self.subscriptions_path = subscriptions_path if capabilities.subscriptions else None
        self.playground_options = _playground_options(playground)

        self.graphql_path: Optional[str] = None
        self.playground_path: Optional[str] = None

    async def will_start(self) -> None:
        """Validate the schema and run the startup hooks, once per server."""
        errors = validate_schema(self.schema)
        if errors:
            details = "\n".join(f"  - {error.message}" for error in errors)
            raise ConfigurationError(f"Invalid GraphQL schema:\n{details}")

        for hook in self.on_startup:
            result = hook()
            if inspect.isawaitable(result):
                await result
        logger.debug("Ran %d startup hook(s).", len(self.on_startup))

    def playground_render_options(self) -> Optional[Dict[str, Any]]:
        """Options for the explorer page, or ``None`` when it is disabled."""
        if self.playground_options is None:
            return None
        options: Dict[str, Any] = {
            "endpoint": self.graphql_path,
            "subscriptionEndpoint": self.subscriptions_path,
        }
        options.update(self.playground_options.model_dump())
        return options

    async def graphql_server_options(self, ctx: RequestContext) -> GraphQLOptions:
        """Build the execution options for the request in *ctx*."""
        if self.context is None:
            context_value: Any = {"request": ctx.request}
        elif callable(self.context):
            context_value = self.context(ctx)
            if inspect.isawaitable(context_value):
                context_value = await context_value
        else:
            context_value = self.context

        return GraphQLOptions(
            schema=self.schema,
            context_value=context_value,
            root_value=self.root_value,
            format_error=self.request_options.format_error,
            debug=self.request_options.debug,
            introspection=self.introspection,
            validation_rules=list(self.validation_rules),
            middleware=self.middleware,
        )
