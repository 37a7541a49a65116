"""Upload interceptor stage.

Replaces the logical request body of ``multipart/form-data`` requests with
the processed GraphQL operations (files in place) before the dispatcher
runs. Processing failures are formatted with the server's error formatter
and propagated; downstream errors are left alone.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

from graphql_sentinel.config.schema import FileUploadOptions
from graphql_sentinel.errors import format_errors
from graphql_sentinel.execution.uploads import process_request
from graphql_sentinel.middleware.chain import Handler, Middleware, RequestContext

if TYPE_CHECKING:
    from graphql_sentinel.server.base import GraphQLServerBase

logger = logging.getLogger(__name__)


def _is_multipart(request: Request) -> bool:
    media_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if media_type != "multipart/form-data":
        return False
    has_length = request.headers.get("content-length", "0") != "0"
    return has_length or "transfer-encoding" in request.headers


def file_upload_middleware(
    uploads_config: FileUploadOptions,
    server: GraphQLServerBase,
) -> Middleware:
    """Build the upload interceptor for *server*."""

    async def _intercept_uploads(ctx: RequestContext, next_handler: Handler) -> Any:
        if not _is_multipart(ctx.request):
            return await next_handler(ctx)

        try:
            operations = await process_request(ctx.request, uploads_config)
        except Exception as exc:
            status = getattr(exc, "status", None)
            if status and getattr(exc, "expose", False):
                ctx.status = status
            logger.warning("[%s] Multipart request rejected: %s", ctx.request_id, exc)
            options = server.request_options
            raise format_errors(
                [exc], formatter=options.format_error, debug=options.debug
            ) from exc

        ctx.request_body = operations
        return await next_handler(ctx)

    return _intercept_uploads
