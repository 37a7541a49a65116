"""Starlette integration: the GraphQL server and its middleware registrar."""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from graphql import GraphQLSchema
from starlette.applications import Starlette

from graphql_sentinel.config.schema import (
    BodyParserOptions,
    CorsOptions,
    HealthCheckCallback,
    RegistrationConfig,
    SentinelConfig,
)
from graphql_sentinel.constants import DEFAULT_GRAPHQL_PATH, HEALTH_CHECK_PATH, SERVER_NAME
from graphql_sentinel.errors import MiddlewareAlreadyAppliedError
from graphql_sentinel.execution.http import graphql_http_handler
from graphql_sentinel.middleware.body import BodyParserMiddleware
from graphql_sentinel.middleware.chain import Pipeline, RequestContext
from graphql_sentinel.middleware.cors import CorsMiddleware
from graphql_sentinel.middleware.dispatch import graphql_dispatcher, playground_middleware
from graphql_sentinel.middleware.health import health_check_middleware
from graphql_sentinel.middleware.startup import StartupBarrier, startup_gate
from graphql_sentinel.middleware.uploads import file_upload_middleware
from graphql_sentinel.server.asgi import GraphQLMiddleware
from graphql_sentinel.server.base import GraphQLOptions, GraphQLServerBase, ServerCapabilities

logger = logging.getLogger(__name__)


class GraphQLServer(GraphQLServerBase):
    """GraphQL server for Starlette applications.

    Usage::

        server = GraphQLServer(schema)
        app = Starlette()
        server.apply_middleware(app, path="/graphql")
    """

    def __init__(self, schema: GraphQLSchema, **kwargs: Any) -> None:
        kwargs["capabilities"] = ServerCapabilities(uploads=True, subscriptions=True)
        super().__init__(schema, **kwargs)
        self.startup_barrier: Optional[StartupBarrier] = None
        self.pipeline: Optional[Pipeline] = None

    async def create_graphql_server_options(self, ctx: RequestContext) -> GraphQLOptions:
        return await self.graphql_server_options(ctx)

    def apply_middleware(
        self,
        app: Starlette,
        *,
        path: Optional[str] = None,
        playground_path: Optional[str] = None,
        cors: Union[bool, CorsOptions, None] = None,
        body_parser_config: Union[bool, BodyParserOptions, None] = None,
        disable_health_check: bool = False,
        on_health_check: Optional[HealthCheckCallback] = None,
    ) -> Pipeline:
        """Attach the GraphQL pipeline to *app*. May be called once per server.

        Stages, in order, each gated on its own path: ``startup``,
        ``health_check``, ``cors``, ``body_parser``, ``uploads``,
        ``graphql`` and ``playground``.
        """
        if self.pipeline is not None:
            raise MiddlewareAlreadyAppliedError(self.graphql_path)

        config = RegistrationConfig(
            path=path or DEFAULT_GRAPHQL_PATH,
            playground_path=playground_path,
            cors=True if cors is None else cors,
            body_parser_config=True if body_parser_config is None else body_parser_config,
            disable_health_check=disable_health_check,
            on_health_check=on_health_check,
        )
        path = config.path
        playground_path = config.explorer_path

        pipeline = Pipeline()

        barrier = StartupBarrier(self.will_start)
        barrier.start_soon()
        self.startup_barrier = barrier
        pipeline.use("startup", path, startup_gate(barrier))

        if not config.disable_health_check:
            pipeline.use(
                "health_check",
                HEALTH_CHECK_PATH,
                health_check_middleware(config.on_health_check),
            )

        uploads_stage = None
        if self.uploads_config is not None:
            uploads_stage = file_upload_middleware(self.uploads_config, self)

        self.graphql_path = path
        self.playground_path = playground_path

        if config.cors is True:
            pipeline.use("cors", path, CorsMiddleware(CorsOptions()))
        elif config.cors is not False:
            pipeline.use("cors", path, CorsMiddleware(config.cors))

        if config.body_parser_config is True:
            pipeline.use("body_parser", path, BodyParserMiddleware(BodyParserOptions()))
        elif config.body_parser_config is not False:
            pipeline.use("body_parser", path, BodyParserMiddleware(config.body_parser_config))

        if uploads_stage is not None:
            pipeline.use("uploads", path, uploads_stage)

        render_options = self.playground_render_options()
        pipeline.use(
            "graphql",
            path,
            graphql_dispatcher(
                path=path,
                playground_path=playground_path,
                render_options=render_options,
                execute=graphql_http_handler(self.create_graphql_server_options),
            ),
        )

        if render_options is not None and path != playground_path:
            pipeline.use("playground", playground_path, playground_middleware(render_options))

        app.add_middleware(GraphQLMiddleware, pipeline=pipeline, barrier=barrier)
        self.pipeline = pipeline
        health_stage = pipeline.get("health_check")
        logger.info(
            "GraphQL endpoint on %s (playground: %s, uploads: %s, health check: %s)",
            path,
            playground_path if render_options is not None else "off",
            "on" if pipeline.get("uploads") is not None else "off",
            health_stage.path if health_stage is not None else "off",
        )
        return pipeline


def register_server(*args: Any, **kwargs: Any) -> None:
    """Removed entry point; always raises."""
    raise RuntimeError(
        "Please use server.apply_middleware instead of register_server. "
        "This warning will be removed in the next release."
    )


def create_app(schema: GraphQLSchema, config: Optional[SentinelConfig] = None, **server_kwargs: Any) -> Starlette:
    """Create a Starlette application serving *schema* as configured.

    Extra keyword arguments go to :class:`GraphQLServer` and override the
    config file values.
    """
    config = config or SentinelConfig()
    settings = config.graphql

    options: dict = {
        "debug": settings.debug,
        "introspection": settings.introspection,
        "playground": settings.playground,
        "uploads": settings.uploads,
        "subscriptions_path": settings.subscriptions_path,
    }
    options.update(server_kwargs)

    application = Starlette()
    server = GraphQLServer(schema, **options)
    server.apply_middleware(application, **settings.registration_kwargs())
    application.state.graphql_server = server
    logger.info("Starlette ASGI app '%s' created.", SERVER_NAME)
    return application
