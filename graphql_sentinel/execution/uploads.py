"""GraphQL multipart request processing.

Implements the GraphQL multipart request format
(https://github.com/jaydenseric/graphql-multipart-request-spec): an
``operations`` field with the JSON operation(s), a ``map`` field pointing
each file field at one or more object paths, then the files themselves.
The result is the operations document with every mapped ``null`` replaced
by the matching :class:`~starlette.datastructures.UploadFile`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from graphql import GraphQLError, GraphQLScalarType
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request

from graphql_sentinel.config.schema import FileUploadOptions
from graphql_sentinel.errors import UploadError

logger = logging.getLogger(__name__)

MULTIPART_FORMAT_URL = "https://github.com/jaydenseric/graphql-multipart-request-spec"


# ── Upload scalar ───────────────────────────────────────────────────────


def _serialize_upload(value: Any) -> Any:
    raise GraphQLError("Upload serialization unsupported.")


def _parse_upload_value(value: Any) -> UploadFile:
    if isinstance(value, UploadFile):
        return value
    raise GraphQLError("Upload value invalid.")


def _parse_upload_literal(value_node: Any, variables: Optional[Dict[str, Any]] = None) -> Any:
    raise GraphQLError("Upload literal unsupported.", value_node)


GraphQLUpload = GraphQLScalarType(
    name="Upload",
    description="The `Upload` scalar type represents a file upload.",
    serialize=_serialize_upload,
    parse_value=_parse_upload_value,
    parse_literal=_parse_upload_literal,
)


# ── Request processing ──────────────────────────────────────────────────


def _field_value(form: FormData, name: str, options: FileUploadOptions) -> str:
    value = form.get(name)
    if value is None or isinstance(value, UploadFile):
        raise UploadError(f"Missing multipart field '{name}' ({MULTIPART_FORMAT_URL}).", status=400)
    if len(value.encode("utf-8")) > options.max_field_size:
        raise UploadError(
            f"The '{name}' multipart field value exceeds the "
            f"{options.max_field_size} byte size limit.",
            status=413,
        )
    return value


def _parse_json_field(name: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise UploadError(
            f"Invalid JSON in the '{name}' multipart field ({MULTIPART_FORMAT_URL}).", status=400
        ) from exc


def _file_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


def _set_path(operations: Any, path: str, value: Any, field_name: str) -> None:
    """Replace the value at dotted *path* inside *operations* with *value*."""
    invalid = UploadError(
        f"Invalid object path for the 'map' multipart field entry key "
        f"'{field_name}' array value '{path}' ({MULTIPART_FORMAT_URL}).",
        status=400,
    )
    segments = path.split(".")
    target = operations
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if isinstance(target, list):
            if not segment.isdigit() or int(segment) >= len(target):
                raise invalid
            key: Any = int(segment)
        elif isinstance(target, dict):
            if segment not in target:
                raise invalid
            key = segment
        else:
            raise invalid
        if last:
            target[key] = value
        else:
            target = target[key]


async def _read_form(request: Request) -> FormData:
    try:
        return await request.form()
    except HTTPException as exc:
        raise UploadError(f"Invalid multipart request: {exc.detail}", status=400) from exc
    except MultiPartException as exc:
        raise UploadError(f"Invalid multipart request: {exc}", status=400) from exc


async def process_request(request: Request, options: FileUploadOptions) -> Any:
    """Parse a multipart GraphQL request into its operations with files in place.

    Raises :class:`UploadError` (``expose=True``) with status 400 for
    malformed requests and 413 for requests that exceed *options* limits.
    """
    form = await _read_form(request)

    operations = _parse_json_field("operations", _field_value(form, "operations", options))
    if not isinstance(operations, (dict, list)):
        raise UploadError(
            f"Invalid type for the 'operations' multipart field ({MULTIPART_FORMAT_URL}).", status=400
        )

    file_map = _parse_json_field("map", _field_value(form, "map", options))
    if not isinstance(file_map, dict):
        raise UploadError(f"Invalid type for the 'map' multipart field ({MULTIPART_FORMAT_URL}).", status=400)

    if options.max_files is not None and len(file_map) > options.max_files:
        raise UploadError(f"{options.max_files} max file uploads exceeded.", status=413)

    for field_name, paths in file_map.items():
        if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
            raise UploadError(
                f"Invalid type for the 'map' multipart field entry key "
                f"'{field_name}' array ({MULTIPART_FORMAT_URL}).",
                status=400,
            )
        upload = form.get(field_name)
        if not isinstance(upload, UploadFile):
            raise UploadError("File missing in the request.", status=400)
        if options.max_file_size is not None and _file_size(upload) > options.max_file_size:
            raise UploadError(
                f"File truncated as it exceeds the {options.max_file_size} byte size limit.",
                status=413,
            )
        for path in paths:
            _set_path(operations, path, upload, field_name)

    uploaded: List[str] = list(file_map)
    logger.debug("Processed multipart request with %d file(s): %s", len(uploaded), uploaded)
    return operations
