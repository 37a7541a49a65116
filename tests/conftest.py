"""Shared fixtures: a small schema and an app factory."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from graphql import GraphQLSchema, build_schema
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from graphql_sentinel.constants import CONFIG_ENV_VAR, ENV_VAR
from graphql_sentinel.middleware.chain import RequestContext
from graphql_sentinel.server.app import GraphQLServer

SDL = """
scalar Upload

type Query {
  hello(name: String): String!
  slow: String!
  boom: String
  fail: String!
}

type Mutation {
  echo(text: String!): String!
  uploadName(file: Upload!): String!
  uploadNames(files: [Upload!]!): [String!]!
}
"""


def _boom(info: Any) -> str:
    raise ValueError("resolver exploded")


async def _slow(info: Any) -> str:
    await asyncio.sleep(0)
    return "done"


ROOT_VALUE: Dict[str, Any] = {
    "hello": lambda info, name=None: f"Hello {name or 'world'}",
    "slow": _slow,
    "boom": _boom,
    "fail": _boom,
    "echo": lambda info, text: text,
    "uploadName": lambda info, file: file.filename,
    "uploadNames": lambda info, files: [f.filename for f in files],
}


async def _other(request: Request) -> PlainTextResponse:
    return PlainTextResponse("other route")


AppFactory = Callable[..., Tuple[Starlette, GraphQLServer]]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_VAR, raising=False)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


@pytest.fixture()
def schema() -> GraphQLSchema:
    return build_schema(SDL)


@pytest.fixture()
def make_app(schema: GraphQLSchema) -> AppFactory:
    """Build a Starlette app with one plain route and the GraphQL pipeline."""

    def _make(server_kwargs: Optional[Dict[str, Any]] = None, **registration: Any) -> Tuple[Starlette, GraphQLServer]:
        app = Starlette(routes=[Route("/other", _other)])
        kwargs: Dict[str, Any] = {"root_value": ROOT_VALUE}
        kwargs.update(server_kwargs or {})
        server = GraphQLServer(schema, **kwargs)
        server.apply_middleware(app, **registration)
        return app, server

    return _make


def make_request(
    path: str = "/graphql",
    method: str = "GET",
    headers: Optional[List[Tuple[str, str]]] = None,
) -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers or []],
    }
    return Request(scope)


def make_ctx(path: str = "/graphql", method: str = "GET", headers: Optional[List[Tuple[str, str]]] = None) -> RequestContext:
    return RequestContext(request=make_request(path, method, headers))
