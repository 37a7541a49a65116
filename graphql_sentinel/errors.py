"""
Defines project-specific exception classes and the shared error formatter.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from graphql import GraphQLError

logger = logging.getLogger(__name__)

ErrorFormatter = Callable[[Dict[str, Any]], Dict[str, Any]]

INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
GRAPHQL_PARSE_FAILED = "GRAPHQL_PARSE_FAILED"
GRAPHQL_VALIDATION_FAILED = "GRAPHQL_VALIDATION_FAILED"
BAD_USER_INPUT = "BAD_USER_INPUT"


class SentinelBaseError(Exception):
    """Base class for all custom exceptions in GraphQL Sentinel."""
    pass


class ConfigurationError(SentinelBaseError):
    """Raised when loading or validating the configuration file fails."""
    pass


class MiddlewareAlreadyAppliedError(SentinelBaseError):
    """Raised when ``apply_middleware`` is called twice on one server."""

    def __init__(self, graphql_path: Optional[str]) -> None:
        super().__init__(
            f"Middleware has already been applied for this server (path: {graphql_path}). "
            "Create a new GraphQLServer to serve another application."
        )


class HttpQueryError(SentinelBaseError):
    """
    Raised by the HTTP transport when a request cannot be executed.

    ``message`` is sent verbatim as the response body; when
    ``is_graphql_error`` is set it already holds a serialised
    ``{"errors": [...]}`` document.
    """

    def __init__(self,
                 status_code: int,
                 message: str,
                 is_graphql_error: bool = False,
                 headers: Optional[Mapping[str, str]] = None):
        self.status_code = status_code
        self.message = message
        self.is_graphql_error = is_graphql_error
        self.headers: Dict[str, str] = dict(headers or {})
        super().__init__(message)


class UploadError(SentinelBaseError):
    """
    Raised when a multipart upload request is malformed or exceeds limits.

    ``status`` is the HTTP status to report and ``expose`` marks whether it
    is safe to surface that status to the client.
    """

    def __init__(self, message: str, status: int = 400, expose: bool = True):
        self.status = status
        self.expose = expose
        super().__init__(message)


class GraphQLRequestErrors(SentinelBaseError):
    """A list of formatted GraphQL errors propagated out of the middleware chain."""

    def __init__(self, errors: List[Dict[str, Any]], status_code: int = 500):
        self.errors = errors
        self.status_code = status_code
        message = "; ".join(str(err.get("message", "")) for err in errors) or "GraphQL request failed"
        super().__init__(message)


# ── Formatting ──────────────────────────────────────────────────────────


def _error_code(error: BaseException, default: Optional[str]) -> str:
    original = error.original_error if isinstance(error, GraphQLError) else error
    if isinstance(original, UploadError):
        return BAD_USER_INPUT
    return default or INTERNAL_SERVER_ERROR


def _stacktrace(error: BaseException) -> List[str]:
    exc = error
    if isinstance(error, GraphQLError) and error.original_error is not None:
        exc = error.original_error
    lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return "".join(lines).splitlines()


def format_error(
    error: BaseException,
    *,
    debug: bool = False,
    code: Optional[str] = None,
) -> Dict[str, Any]:
    """Convert *error* into a GraphQL response error entry.

    ``extensions.code`` keeps any code the error already carries; otherwise
    it is derived from the error type, falling back to *code* and then to
    ``INTERNAL_SERVER_ERROR``.
    """
    if isinstance(error, GraphQLError):
        formatted: Dict[str, Any] = dict(error.formatted)
    else:
        formatted = {"message": str(error) or type(error).__name__}

    extensions = dict(formatted.get("extensions") or {})
    extensions.setdefault("code", _error_code(error, code))
    if debug:
        extensions["exception"] = {"stacktrace": _stacktrace(error)}
    formatted["extensions"] = extensions
    return formatted


def _apply_formatter(
    entry: Dict[str, Any],
    formatter: ErrorFormatter,
    debug: bool,
) -> Dict[str, Any]:
    try:
        return formatter(entry)
    except Exception as exc:
        logger.exception("Custom error formatter failed: %s", exc)
        fallback: Dict[str, Any] = {
            "message": "Internal server error",
            "extensions": {"code": INTERNAL_SERVER_ERROR},
        }
        if debug:
            fallback["extensions"]["exception"] = {
                "formatter_error": str(exc),
                "stacktrace": _stacktrace(exc),
            }
        return fallback


def formatted_error_list(
    errors: Iterable[BaseException],
    *,
    formatter: Optional[ErrorFormatter] = None,
    debug: bool = False,
    code: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Format each error and run the optional user *formatter* over it."""
    result: List[Dict[str, Any]] = []
    for error in errors:
        entry = format_error(error, debug=debug, code=code)
        if formatter is not None:
            entry = _apply_formatter(entry, formatter, debug)
        result.append(entry)
    return result


def format_errors(
    errors: Iterable[BaseException],
    *,
    formatter: Optional[ErrorFormatter] = None,
    debug: bool = False,
) -> GraphQLRequestErrors:
    """Format *errors* into a single :class:`GraphQLRequestErrors` ready to raise."""
    errors = list(errors)
    status_code = 500
    for error in errors:
        status = getattr(error, "status", None)
        if isinstance(status, int) and getattr(error, "expose", False):
            status_code = status
            break
    return GraphQLRequestErrors(
        formatted_error_list(errors, formatter=formatter, debug=debug),
        status_code=status_code,
    )
