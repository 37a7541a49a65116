"""Pipeline stages for the GraphQL path.

Registration order: startup → health_check → cors → body_parser →
uploads → graphql → playground.
"""

from graphql_sentinel.middleware.chain import (
    Handler,
    Middleware,
    Pipeline,
    RequestContext,
    Stage,
    build_chain,
)
from graphql_sentinel.middleware.routing import middleware_from_path
from graphql_sentinel.middleware.body import BodyParserMiddleware
from graphql_sentinel.middleware.cors import CorsMiddleware
from graphql_sentinel.middleware.dispatch import graphql_dispatcher, playground_middleware
from graphql_sentinel.middleware.health import health_check_middleware
from graphql_sentinel.middleware.startup import StartupBarrier, startup_gate
from graphql_sentinel.middleware.uploads import file_upload_middleware

__all__ = [
    "BodyParserMiddleware",
    "CorsMiddleware",
    "Handler",
    "Middleware",
    "Pipeline",
    "RequestContext",
    "Stage",
    "StartupBarrier",
    "build_chain",
    "file_upload_middleware",
    "graphql_dispatcher",
    "health_check_middleware",
    "middleware_from_path",
    "playground_middleware",
    "startup_gate",
]
