"""Starlette server integration."""

from graphql_sentinel.server.app import GraphQLServer, create_app, register_server
from graphql_sentinel.server.asgi import GraphQLMiddleware
from graphql_sentinel.server.base import (
    GraphQLOptions,
    GraphQLServerBase,
    RequestOptions,
    ServerCapabilities,
)

__all__ = [
    "GraphQLMiddleware",
    "GraphQLOptions",
    "GraphQLServer",
    "GraphQLServerBase",
    "RequestOptions",
    "ServerCapabilities",
    "create_app",
    "register_server",
]
