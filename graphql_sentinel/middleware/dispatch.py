"""Content-negotiating dispatcher and the standalone explorer stage.

On the execution path a browser ``GET`` (``text/html`` ranked ahead of
``application/json``) gets the Playground page when the explorer shares
that path; everything else goes to the GraphQL execution handler.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from graphql_sentinel.explorer import prefers_html, render_playground_page
from graphql_sentinel.middleware.chain import Handler, Middleware, RequestContext

logger = logging.getLogger(__name__)


def _render(ctx: RequestContext, render_options: Mapping[str, Any]) -> None:
    ctx.set_header("Content-Type", "text/html")
    ctx.body = render_playground_page(render_options)


def graphql_dispatcher(
    *,
    path: str,
    playground_path: str,
    render_options: Optional[Mapping[str, Any]],
    execute: Middleware,
) -> Middleware:
    """Build the dispatcher stage for the execution path.

    *execute* is the terminal execution stage; it receives the same
    ``(ctx, next_handler)`` pair the dispatcher was called with.
    """
    serves_explorer = render_options is not None and path == playground_path

    async def _dispatch(ctx: RequestContext, next_handler: Handler) -> Any:
        if serves_explorer and ctx.method == "GET" and prefers_html(ctx.request):
            logger.debug("[%s] Serving playground on %s", ctx.request_id, path)
            _render(ctx, render_options)
            return None
        return await execute(ctx, next_handler)

    return _dispatch


def playground_middleware(render_options: Mapping[str, Any]) -> Middleware:
    """Stage that always renders the explorer, whatever the method or Accept."""

    async def _playground(ctx: RequestContext, next_handler: Handler) -> None:
        _render(ctx, render_options)

    return _playground
