"""CORS stage for the GraphQL path.

Reuses Starlette's :class:`~starlette.middleware.cors.CORSMiddleware` as
the policy object (origin matching, preflight responses, simple headers)
but applies it inside the pipeline so it only covers the GraphQL path.
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.middleware.cors import CORSMiddleware
from starlette.types import Receive, Scope, Send

from graphql_sentinel.config.schema import CorsOptions
from graphql_sentinel.middleware.chain import Handler, RequestContext

logger = logging.getLogger(__name__)


async def _no_app(scope: Scope, receive: Receive, send: Send) -> None:
    raise RuntimeError("CORS policy object is not an ASGI application")


class CorsMiddleware:
    """Pipeline stage applying a :class:`CorsOptions` policy.

    Requests without an ``Origin`` header pass through untouched.
    Preflight requests are answered directly and end the chain.
    """

    def __init__(self, options: CorsOptions) -> None:
        self.options = options
        self._policy = CORSMiddleware(
            _no_app,
            allow_origins=options.allow_origins,
            allow_methods=options.allow_methods,
            allow_headers=options.allow_headers,
            allow_credentials=options.allow_credentials,
            allow_origin_regex=options.allow_origin_regex,
            expose_headers=options.expose_headers,
            max_age=options.max_age,
        )

    async def __call__(self, ctx: RequestContext, next_handler: Handler) -> Any:
        request_headers = ctx.request.headers
        origin = request_headers.get("origin")
        if origin is None:
            return await next_handler(ctx)

        if ctx.method == "OPTIONS" and "access-control-request-method" in request_headers:
            logger.debug("[%s] CORS preflight from %s", ctx.request_id, origin)
            ctx.response = self._policy.preflight_response(request_headers=request_headers)
            return None

        ctx.response_headers.update(self._policy.simple_headers)
        has_cookie = "cookie" in request_headers
        if self._policy.allow_all_origins and has_cookie:
            self._allow_explicit_origin(ctx, origin)
        elif not self._policy.allow_all_origins and self._policy.is_allowed_origin(origin=origin):
            self._allow_explicit_origin(ctx, origin)
        return await next_handler(ctx)

    @staticmethod
    def _allow_explicit_origin(ctx: RequestContext, origin: str) -> None:
        ctx.response_headers["Access-Control-Allow-Origin"] = origin
        ctx.response_headers.add_vary_header("Origin")
