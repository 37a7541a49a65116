"""GraphQL execution over HTTP and multipart upload processing."""

from graphql_sentinel.execution.http import graphql_http_handler, run_http_query
from graphql_sentinel.execution.uploads import GraphQLUpload, process_request

__all__ = [
    "GraphQLUpload",
    "graphql_http_handler",
    "process_request",
    "run_http_query",
]
