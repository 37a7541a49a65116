"""ASGI adapter running the GraphQL pipeline in front of a Starlette app.

Pure ASGI middleware (no ``BaseHTTPMiddleware``): every HTTP request goes
through the compiled :class:`~graphql_sentinel.middleware.chain.Pipeline`;
requests that no stage answers fall through to the wrapped application.
"""

from __future__ import annotations

import logging

from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from graphql_sentinel.errors import GraphQLRequestErrors
from graphql_sentinel.middleware.chain import Pipeline, RequestContext
from graphql_sentinel.middleware.startup import StartupBarrier

logger = logging.getLogger(__name__)


class GraphQLMiddleware:
    """Run *pipeline* for each HTTP request to *app*.

    Usage::

        app.add_middleware(GraphQLMiddleware, pipeline=pipeline, barrier=barrier)

    The lifespan ``startup`` event starts *barrier* if registration could
    not. Errors raised by stages are rendered as follows:

    - :class:`GraphQLRequestErrors` → ``{"errors": [...]}`` JSON with the
      error status a stage put on the context, else the error's own.
    - Starlette :class:`HTTPException` → plain text with its status.
    - Anything else propagates to Starlette's error handling.
    """

    def __init__(self, app: ASGIApp, pipeline: Pipeline, barrier: StartupBarrier) -> None:
        self.app = app
        self.pipeline = pipeline
        self.barrier = barrier
        self._chain = pipeline.compile()
        logger.debug("GraphQL pipeline compiled: %s", " → ".join(pipeline.names))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self.app(scope, self._watch_lifespan(receive), send)
            return
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        ctx = RequestContext(request=request)
        try:
            try:
                await self._chain(ctx)
            except GraphQLRequestErrors as exc:
                status = ctx.status if ctx.status and ctx.status >= 400 else exc.status_code
                response: Response = JSONResponse({"errors": exc.errors}, status_code=status)
            except HTTPException as exc:
                response = PlainTextResponse(
                    str(exc.detail), status_code=exc.status_code, headers=exc.headers
                )
            else:
                if ctx.fell_through:
                    await self.app(scope, receive, send)
                    return
                response = ctx.to_response()

            await response(scope, receive, send)
        finally:
            # Closes any parsed multipart form and its spooled upload files.
            await request.close()

    def _watch_lifespan(self, receive: Receive) -> Receive:
        async def _receive() -> Message:
            message = await receive()
            if message["type"] == "lifespan.startup":
                self.barrier.start()
                logger.debug(
                    "Lifespan startup received; server startup %s.",
                    "finished" if self.barrier.done else "pending",
                )
            return message

        return _receive
