"""Request body parsing stage.

Parses JSON, urlencoded form and (optionally) text bodies into
``ctx.request_body`` so the GraphQL handler can read the operation.
Multipart bodies are left to the upload stage.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from starlette.exceptions import HTTPException
from starlette.requests import Request

from graphql_sentinel.config.schema import BodyParserOptions
from graphql_sentinel.middleware.chain import Handler, RequestContext

logger = logging.getLogger(__name__)

_FORM_TYPE = "application/x-www-form-urlencoded"


def _media_type(request: Request) -> str:
    return request.headers.get("content-type", "").split(";", 1)[0].strip().lower()


def _is_json(media_type: str) -> bool:
    return media_type == "application/json" or media_type.endswith("+json")


class BodyParserMiddleware:
    """Pipeline stage applying a :class:`BodyParserOptions` policy."""

    def __init__(self, options: BodyParserOptions) -> None:
        self.options = options

    async def __call__(self, ctx: RequestContext, next_handler: Handler) -> Any:
        if ctx.request_body is None:
            ctx.request_body = await self._parse(ctx)
        return await next_handler(ctx)

    async def _parse(self, ctx: RequestContext) -> Any:
        media_type = _media_type(ctx.request)
        enabled = self.options.enable_types

        if "json" in enabled and _is_json(media_type):
            raw = await self._read(ctx.request, self.options.json_limit)
            return self._parse_json(ctx, raw)
        if "form" in enabled and media_type == _FORM_TYPE:
            await self._read(ctx.request, self.options.form_limit)
            form = await ctx.request.form()
            return dict(form)
        if "text" in enabled and media_type.startswith("text/"):
            raw = await self._read(ctx.request, self.options.text_limit)
            return raw.decode("utf-8", errors="replace")
        return {}

    @staticmethod
    async def _read(request: Request, limit: int) -> bytes:
        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            raise HTTPException(status_code=413, detail="request entity too large")
        raw = await request.body()
        if len(raw) > limit:
            raise HTTPException(status_code=413, detail="request entity too large")
        return raw

    def _parse_json(self, ctx: RequestContext, raw: bytes) -> Any:
        if not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            logger.debug("[%s] Rejected invalid JSON body: %s", ctx.request_id, exc)
            raise HTTPException(status_code=400, detail="invalid JSON body") from exc
        if self.options.strict and not isinstance(parsed, (dict, list)):
            raise HTTPException(
                status_code=400,
                detail="invalid JSON, only supports object and array",
            )
        return parsed
