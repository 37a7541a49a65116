"""Health check stage.

Served at ``/.well-known/apollo/server-health``; the response follows
https://tools.ietf.org/html/draft-inadarei-api-health-check-01.

Failures of a custom check are never propagated: they turn into a 503
``{"status": "fail"}`` response.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Optional

from graphql_sentinel.constants import HEALTH_CHECK_MEDIA_TYPE
from graphql_sentinel.middleware.chain import Handler, Middleware, RequestContext

logger = logging.getLogger(__name__)


def health_check_middleware(on_health_check: Optional[Callable[[Any], Any]] = None) -> Middleware:
    """Build the health check stage.

    *on_health_check* receives the Starlette request; the check passes when
    it returns (or its awaitable resolves) and fails when it raises.
    """

    async def _health_check(ctx: RequestContext, next_handler: Handler) -> None:
        ctx.set_header("Content-Type", HEALTH_CHECK_MEDIA_TYPE)

        if on_health_check is None:
            ctx.body = {"status": "pass"}
            return

        try:
            result = on_health_check(ctx.request)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning("Health check failed: %s", exc)
            ctx.status = 503
            ctx.body = {"status": "fail"}
            return

        ctx.body = {"status": "pass"}

    return _health_check
