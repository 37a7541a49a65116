"""GraphQL over HTTP transport.

:func:`run_http_query` turns a GET query string or a parsed POST body
(single operation or batch) into a serialised GraphQL response using
graphql-core. :func:`graphql_http_handler` wraps it as the terminal
pipeline stage.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from graphql import (
    GraphQLError,
    NoSchemaIntrospectionCustomRule,
    OperationType,
    execute,
    get_operation_ast,
    parse,
    specified_rules,
    validate,
)
from graphql.execution.values import get_variable_values

from graphql_sentinel.errors import (
    BAD_USER_INPUT,
    GRAPHQL_PARSE_FAILED,
    GRAPHQL_VALIDATION_FAILED,
    HttpQueryError,
    formatted_error_list,
)
from graphql_sentinel.middleware.chain import Handler, Middleware, RequestContext

if TYPE_CHECKING:
    from graphql_sentinel.server.base import GraphQLOptions

logger = logging.getLogger(__name__)

OptionsFactory = Callable[[RequestContext], Awaitable["GraphQLOptions"]]

JSON_HEADERS = {"Content-Type": "application/json"}


# ── Helpers ─────────────────────────────────────────────────────────────


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


def _graphql_http_error(
    status_code: int,
    errors: List[GraphQLError],
    options: GraphQLOptions,
    code: Optional[str] = None,
) -> HttpQueryError:
    formatted = formatted_error_list(
        errors, formatter=options.format_error, debug=options.debug, code=code
    )
    return HttpQueryError(
        status_code,
        _dumps({"errors": formatted}),
        is_graphql_error=True,
        headers=JSON_HEADERS,
    )


def _json_param(name: str, value: Any) -> Optional[Dict[str, Any]]:
    """Decode *value* when it arrives as a JSON string (GET or form bodies)."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise HttpQueryError(400, f"{name.capitalize()} are invalid JSON.") from exc
    if value is not None and not isinstance(value, dict):
        raise HttpQueryError(400, f"{name.capitalize()} must be an object.")
    return value


def _validation_rules(options: GraphQLOptions) -> List[Any]:
    rules = list(specified_rules)
    rules.extend(options.validation_rules or ())
    if not options.introspection:
        rules.append(NoSchemaIntrospectionCustomRule)
    return rules


# ── Single operation ────────────────────────────────────────────────────


async def _execute_operation(
    method: str,
    params: Mapping[str, Any],
    options: GraphQLOptions,
) -> Dict[str, Any]:
    if not isinstance(params, Mapping):
        raise HttpQueryError(400, "GraphQL operation must be an object.")

    query = params.get("query")
    if not query or not isinstance(query, str):
        raise HttpQueryError(400, "Must provide query string.")
    variables = _json_param("variables", params.get("variables"))
    _json_param("extensions", params.get("extensions"))
    operation_name = params.get("operationName") or None

    try:
        document = parse(query)
    except GraphQLError as error:
        raise _graphql_http_error(400, [error], options, code=GRAPHQL_PARSE_FAILED) from error

    validation_errors = validate(options.schema, document, _validation_rules(options))
    if validation_errors:
        raise _graphql_http_error(
            400, validation_errors, options, code=GRAPHQL_VALIDATION_FAILED
        )

    operation = get_operation_ast(document, operation_name)
    if operation is None:
        if operation_name:
            message = f"Unknown operation named '{operation_name}'."
        else:
            message = "Must provide operation name if query contains multiple operations."
        raise _graphql_http_error(400, [GraphQLError(message)], options)

    if method == "GET" and operation.operation != OperationType.QUERY:
        raise HttpQueryError(
            405,
            f"GET supports only query operation, got {operation.operation.value}.",
            headers={"Allow": "POST"},
        )

    # Execution never starts when the variables cannot be coerced.
    coerced = get_variable_values(
        options.schema, operation.variable_definitions or (), variables or {}
    )
    if isinstance(coerced, list):
        raise _graphql_http_error(400, coerced, options, code=BAD_USER_INPUT)

    result = execute(
        options.schema,
        document,
        root_value=options.root_value,
        context_value=options.context_value,
        variable_values=variables,
        operation_name=operation_name,
        middleware=options.middleware,
    )
    if inspect.isawaitable(result):
        result = await result

    response: Dict[str, Any] = {"data": result.data}
    if result.errors:
        response["errors"] = formatted_error_list(
            result.errors, formatter=options.format_error, debug=options.debug
        )
    return response


async def _execute_batch_entry(
    method: str,
    params: Any,
    options: GraphQLOptions,
) -> Dict[str, Any]:
    # One failing operation must not fail the rest of the batch.
    try:
        return await _execute_operation(method, params, options)
    except HttpQueryError as exc:
        if exc.is_graphql_error:
            return json.loads(exc.message)
        return {
            "errors": formatted_error_list(
                [GraphQLError(exc.message)],
                formatter=options.format_error,
                debug=options.debug,
            )
        }


# ── Transport ───────────────────────────────────────────────────────────


async def run_http_query(
    method: str,
    query_data: Any,
    options: GraphQLOptions,
) -> Tuple[str, Dict[str, str]]:
    """Execute the GraphQL request carried by *query_data*.

    Returns the JSON response body and the headers to send with it.
    Raises :class:`HttpQueryError` for transport-level failures.
    """
    if method == "POST":
        if not query_data:
            raise HttpQueryError(
                500, "POST body missing. Did you forget use body-parser middleware?"
            )
    elif method == "GET":
        if not query_data:
            raise HttpQueryError(400, "GET query missing.")
    else:
        raise HttpQueryError(
            405,
            "GraphQL Sentinel supports only GET/POST requests.",
            headers={"Allow": "GET, POST"},
        )

    if isinstance(query_data, list):
        logger.debug("Executing batch of %d operation(s)", len(query_data))
        responses = [
            await _execute_batch_entry(method, params, options) for params in query_data
        ]
        return _dumps(responses), dict(JSON_HEADERS)

    response = await _execute_operation(method, query_data, options)
    return _dumps(response), dict(JSON_HEADERS)


def graphql_http_handler(options_factory: OptionsFactory) -> Middleware:
    """Terminal stage executing the request against the options it builds.

    *options_factory* is called lazily, once per request, only when the
    request actually reaches execution.
    """

    async def _graphql(ctx: RequestContext, next_handler: Handler) -> None:
        method = ctx.method
        if method == "GET":
            query_data: Any = dict(ctx.request.query_params)
        elif method == "POST":
            query_data = ctx.request_body
        else:
            query_data = None

        options = await options_factory(ctx)
        try:
            body, headers = await run_http_query(method, query_data, options)
        except HttpQueryError as exc:
            logger.debug(
                "[%s] GraphQL request rejected with %d: %s",
                ctx.request_id,
                exc.status_code,
                exc.message,
            )
            for name, value in exc.headers.items():
                ctx.set_header(name, value)
            ctx.status = exc.status_code
            ctx.body = exc.message
            return

        for name, value in headers.items():
            ctx.set_header(name, value)
        ctx.body = body
        logger.debug("[%s] GraphQL request served in %.1fms", ctx.request_id, ctx.elapsed_ms)

    return _graphql
