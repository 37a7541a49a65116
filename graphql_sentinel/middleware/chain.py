"""Core middleware chain infrastructure.

Defines the request context, handler/middleware protocols, the named
stage descriptors a registrar builds once at startup, and the chain
builder that composes them into a single async handler.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Protocol

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import Response

from graphql_sentinel.middleware.routing import middleware_from_path

logger = logging.getLogger(__name__)

# ── Type protocol ────────────────────────────────────────────────────────


class Handler(Protocol):
    """Async callable that takes a RequestContext."""

    async def __call__(self, ctx: RequestContext) -> Any: ...


class Middleware(Protocol):
    """Async callable that wraps the next handler in the chain."""

    async def __call__(self, ctx: RequestContext, next_handler: Handler) -> Any: ...


# ── Request context ─────────────────────────────────────────────────────


@dataclass
class RequestContext:
    """Per-request scratch threaded through the middleware chain.

    Stages read the request and write the response fields; the ASGI
    adapter turns them into a Starlette response once the chain settles.

    Attributes:
        request: The incoming Starlette request.
        status: Response status, ``None`` until a stage sets one.
        body: Response body (``str``, ``bytes``, or JSON-serialisable).
        response_headers: Headers to send with the response.
        response: A complete response prepared by a stage (takes precedence
            over ``status``/``body``).
        request_body: The logical request body after parsing.
        request_id: Unique identifier for this request.
        start_time: High-resolution monotonic timestamp.
        metadata: Arbitrary key–value store for stages to attach data.
        fell_through: Set when the chain ran past its last stage.
    """

    request: Request
    status: Optional[int] = None
    body: Any = None
    response_headers: MutableHeaders = field(default_factory=MutableHeaders)
    response: Optional[Response] = None
    request_body: Any = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    start_time: float = field(default_factory=time.monotonic)
    metadata: Dict[str, Any] = field(default_factory=dict)
    fell_through: bool = False

    @property
    def path(self) -> str:
        return self.request.scope["path"]

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since request start."""
        return (time.monotonic() - self.start_time) * 1000.0

    def set_header(self, name: str, value: str) -> None:
        self.response_headers[name] = value

    def to_response(self) -> Response:
        """Build the Starlette response described by this context."""
        if self.response is not None:
            for name, value in self.response_headers.items():
                if name not in self.response.headers:
                    self.response.headers[name] = value
            return self.response

        headers = dict(self.response_headers)
        has_type = "content-type" in self.response_headers
        body = self.body
        if body is None:
            status = self.status or 404
            content: bytes = b"Not Found" if status == 404 else b""
            if content and not has_type:
                headers["content-type"] = "text/plain; charset=utf-8"
            return Response(content, status_code=status, headers=headers)

        if isinstance(body, bytes):
            content = body
            default_type = "application/octet-stream"
        elif isinstance(body, str):
            content = body.encode("utf-8")
            default_type = "text/plain; charset=utf-8"
        else:
            content = json.dumps(body, separators=(",", ":")).encode("utf-8")
            default_type = "application/json"
        if not has_type:
            headers["content-type"] = default_type
        return Response(content, status_code=self.status or 200, headers=headers)


# ── Stages ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Stage:
    """A named middleware registered at one exact request path."""

    name: str
    path: str
    middleware: Middleware


async def _fall_through(ctx: RequestContext) -> None:
    ctx.fell_through = True


class Pipeline:
    """Ordered list of :class:`Stage` descriptors.

    Stages run in registration order; each is gated on its path via
    :func:`~graphql_sentinel.middleware.routing.middleware_from_path`.
    """

    def __init__(self) -> None:
        self._stages: List[Stage] = []

    def use(self, name: str, path: str, middleware: Middleware) -> None:
        """Append a stage."""
        self._stages.append(Stage(name=name, path=path, middleware=middleware))
        logger.debug("Registered stage '%s' on %s", name, path)

    @property
    def names(self) -> List[str]:
        return [stage.name for stage in self._stages]

    def get(self, name: str) -> Optional[Stage]:
        for stage in self._stages:
            if stage.name == name:
                return stage
        return None

    def compile(self) -> Callable[[RequestContext], Awaitable[Any]]:
        """Compose all stages into one handler that marks fall-through at the end."""
        gated = [middleware_from_path(stage.path, stage.middleware) for stage in self._stages]
        return build_chain(gated, _fall_through)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)


# ── Chain builder ────────────────────────────────────────────────────────


def build_chain(
    middlewares: List[Any],
    handler: Any,
) -> Callable[[RequestContext], Awaitable[Any]]:
    """Compose *middlewares* around a final *handler*.

    Middleware are applied in list order: the first middleware in the list
    is the outermost wrapper (executed first for requests, last for
    responses).

    Args:
        middlewares: Callables conforming to :class:`Middleware`.
        handler: The innermost handler.

    Returns:
        An async callable ``(RequestContext) -> Any``.
    """
    chain = handler
    for mw in reversed(middlewares):
        next_handler = chain

        async def _wrap(
            ctx: RequestContext,
            _mw: Any = mw,
            _next: Any = next_handler,
        ) -> Any:
            return await _mw(ctx, _next)

        chain = _wrap
    return chain
