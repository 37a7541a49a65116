"""
GraphQL Sentinel - a GraphQL server integration for Starlette.

GraphQL Sentinel mounts a GraphQL HTTP endpoint on a Starlette application
together with its auxiliary endpoints: a health probe, the GraphQL
Playground explorer, multipart file uploads, CORS and body parsing.
"""

from graphql_sentinel.constants import SERVER_NAME, SERVER_VERSION
from graphql_sentinel.execution.uploads import GraphQLUpload
from graphql_sentinel.server.app import GraphQLServer, create_app, register_server
from graphql_sentinel.server.base import GraphQLOptions, ServerCapabilities

__version__ = SERVER_VERSION
__app_name__ = SERVER_NAME

__all__ = [
    "SERVER_NAME",
    "SERVER_VERSION",
    "GraphQLOptions",
    "GraphQLServer",
    "GraphQLUpload",
    "ServerCapabilities",
    "create_app",
    "register_server",
    "__version__",
    "__app_name__",
]
