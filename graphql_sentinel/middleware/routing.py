"""Path gating for pipeline stages.

Every stage of the GraphQL pipeline is bound to one exact request path.
Matching is plain string equality on the ASGI ``path``: no patterns, no
path parameters and no prefix matching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from graphql_sentinel.middleware.chain import Handler, Middleware, RequestContext


def middleware_from_path(path: str, middleware: Middleware) -> Middleware:
    """Wrap *middleware* so it only runs for requests whose path is *path*.

    Other requests go straight to the next handler.
    """

    async def _gated(ctx: RequestContext, next_handler: Handler) -> Any:
        if ctx.path == path:
            return await middleware(ctx, next_handler)
        return await next_handler(ctx)

    return _gated
