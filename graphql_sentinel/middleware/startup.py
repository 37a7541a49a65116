"""Startup barrier for the GraphQL path.

The server's ``will_start`` routine runs exactly once per server. Its task
is created as early as possible (at registration when an event loop is
already running, otherwise on the ASGI lifespan startup event, otherwise
on the first gated request) and every request on the GraphQL path awaits
that same task before continuing.

Slot order in the pipeline: **STARTUP → Health → CORS → Body → Uploads → GraphQL**.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from graphql_sentinel.middleware.chain import Handler, Middleware, RequestContext

logger = logging.getLogger(__name__)


class StartupBarrier:
    """Write-once holder for the single startup task.

    Parameters
    ----------
    startup:
        Zero-argument coroutine function, typically ``server.will_start``.
    """

    def __init__(self, startup: Callable[[], Awaitable[Any]]) -> None:
        self._startup = startup
        self._task: Optional[asyncio.Future] = None

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> asyncio.Future:
        """Schedule the startup routine unless it already is; return its task.

        Must be called with a running event loop.
        """
        if self._task is None:
            logger.debug("Scheduling server startup.")
            self._task = asyncio.ensure_future(self._startup())
            self._task.add_done_callback(self._log_outcome)
        return self._task

    def start_soon(self) -> bool:
        """Start now if an event loop is running. Returns whether it started."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; startup deferred to lifespan or first request.")
            return False
        self.start()
        return True

    async def wait(self) -> None:
        """Wait for startup to finish, re-raising its failure.

        The shared task is shielded so cancelling one request never
        cancels startup for everyone else.
        """
        await asyncio.shield(self.start())

    @staticmethod
    def _log_outcome(task: asyncio.Future) -> None:
        if task.cancelled():
            logger.warning("Server startup was cancelled.")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Server startup failed: %s", exc, exc_info=exc)
        else:
            logger.info("Server startup complete.")


def startup_gate(barrier: StartupBarrier) -> Middleware:
    """Stage that holds each request until *barrier* has settled."""

    async def _await_startup(ctx: RequestContext, next_handler: Handler) -> Any:
        await barrier.wait()
        return await next_handler(ctx)

    return _await_startup
