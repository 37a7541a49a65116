"""Tests for multipart processing and the upload interceptor."""

from __future__ import annotations

import io
import json
from types import SimpleNamespace
from typing import Any, List

import pytest
from graphql import GraphQLError
from starlette.datastructures import UploadFile
from starlette.testclient import TestClient

from conftest import ROOT_VALUE, make_ctx
from graphql_sentinel.config.schema import FileUploadOptions
from graphql_sentinel.errors import BAD_USER_INPUT, GraphQLRequestErrors, UploadError
from graphql_sentinel.execution.uploads import GraphQLUpload
from graphql_sentinel.middleware import uploads as uploads_stage
from graphql_sentinel.server.base import RequestOptions

SINGLE = json.dumps(
    {
        "query": "mutation($file: Upload!) { uploadName(file: $file) }",
        "variables": {"file": None},
    }
)
MULTIPLE = json.dumps(
    {
        "query": "mutation($files: [Upload!]!) { uploadNames(files: $files) }",
        "variables": {"files": [None, None]},
    }
)
MULTIPART_HEADERS = [("content-type", "multipart/form-data; boundary=xyz"), ("content-length", "42")]


def _stub_server(debug: bool = False) -> Any:
    return SimpleNamespace(request_options=RequestOptions(debug=debug))


# ── Upload scalar ───────────────────────────────────────────────────────


class TestGraphQLUpload:
    def test_accepts_upload_file(self) -> None:
        upload = UploadFile(file=io.BytesIO(b"x"), filename="a.txt")
        assert GraphQLUpload.parse_value(upload) is upload

    def test_rejects_other_values(self) -> None:
        with pytest.raises(GraphQLError):
            GraphQLUpload.parse_value("a.txt")

    def test_cannot_be_serialised(self) -> None:
        with pytest.raises(GraphQLError):
            GraphQLUpload.serialize(object())


# ── Interceptor stage ───────────────────────────────────────────────────


class TestFileUploadMiddleware:
    @pytest.mark.asyncio
    async def test_non_multipart_passes_through(self) -> None:
        calls: List[str] = []

        async def _next(ctx: Any) -> None:
            calls.append("next")

        ctx = make_ctx(method="POST", headers=[("content-type", "application/json")])
        stage = uploads_stage.file_upload_middleware(FileUploadOptions(), _stub_server())
        await stage(ctx, _next)
        assert calls == ["next"]
        assert ctx.request_body is None

    @pytest.mark.asyncio
    async def test_exposed_status_is_copied_and_error_formatted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def _reject(request: Any, options: FileUploadOptions) -> Any:
            raise UploadError("Unprocessable upload.", status=422, expose=True)

        async def _next(ctx: Any) -> None:
            raise AssertionError("continuation must not run")

        monkeypatch.setattr(uploads_stage, "process_request", _reject)
        ctx = make_ctx(method="POST", headers=MULTIPART_HEADERS)
        stage = uploads_stage.file_upload_middleware(FileUploadOptions(), _stub_server())

        with pytest.raises(GraphQLRequestErrors) as info:
            await stage(ctx, _next)
        assert ctx.status == 422
        assert ctx.request_body is None
        assert info.value.status_code == 422
        assert info.value.errors[0]["message"] == "Unprocessable upload."
        assert info.value.errors[0]["extensions"]["code"] == BAD_USER_INPUT
        assert isinstance(info.value.__cause__, UploadError)

    @pytest.mark.asyncio
    async def test_hidden_status_is_not_copied(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def _reject(request: Any, options: FileUploadOptions) -> Any:
            raise UploadError("Disk full.", status=507, expose=False)

        monkeypatch.setattr(uploads_stage, "process_request", _reject)
        ctx = make_ctx(method="POST", headers=MULTIPART_HEADERS)
        stage = uploads_stage.file_upload_middleware(FileUploadOptions(), _stub_server())

        with pytest.raises(GraphQLRequestErrors) as info:
            await stage(ctx, lambda c: None)
        assert ctx.status is None
        assert info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_formatted_too(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def _reject(request: Any, options: FileUploadOptions) -> Any:
            raise OSError("stream reset")

        monkeypatch.setattr(uploads_stage, "process_request", _reject)
        ctx = make_ctx(method="POST", headers=MULTIPART_HEADERS)
        stage = uploads_stage.file_upload_middleware(FileUploadOptions(), _stub_server(debug=True))

        with pytest.raises(GraphQLRequestErrors) as info:
            await stage(ctx, lambda c: None)
        extensions = info.value.errors[0]["extensions"]
        assert extensions["code"] == "INTERNAL_SERVER_ERROR"
        assert "stacktrace" in extensions["exception"]


# ── End to end ──────────────────────────────────────────────────────────


class TestMultipartRequests:
    def test_single_file(self, make_app) -> None:
        app, _ = make_app()
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={"operations": SINGLE, "map": json.dumps({"0": ["variables.file"]})},
                files={"0": ("notes.txt", b"hello", "text/plain")},
            )
        assert response.status_code == 200
        assert response.json() == {"data": {"uploadName": "notes.txt"}}

    def test_file_list(self, make_app) -> None:
        app, _ = make_app()
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={
                    "operations": MULTIPLE,
                    "map": json.dumps({"a": ["variables.files.0"], "b": ["variables.files.1"]}),
                },
                files={"a": ("a.png", b"1", "image/png"), "b": ("b.png", b"2", "image/png")},
            )
        assert response.json() == {"data": {"uploadNames": ["a.png", "b.png"]}}

    def test_batch_operations(self, make_app) -> None:
        app, _ = make_app()
        operations = json.dumps([json.loads(SINGLE), {"query": "{ hello }"}])
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={"operations": operations, "map": json.dumps({"0": ["0.variables.file"]})},
                files={"0": ("x.bin", b"\x00", "application/octet-stream")},
            )
        assert response.json() == [
            {"data": {"uploadName": "x.bin"}},
            {"data": {"hello": "Hello world"}},
        ]

    def test_processor_rejection_with_exposed_status(self, make_app, monkeypatch: pytest.MonkeyPatch) -> None:
        async def _reject(request: Any, options: FileUploadOptions) -> Any:
            raise UploadError("Unprocessable upload.", status=422, expose=True)

        monkeypatch.setattr(uploads_stage, "process_request", _reject)
        app, _ = make_app()
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={"operations": SINGLE, "map": "{}"},
                files={"0": ("a.txt", b"x", "text/plain")},
            )
        assert response.status_code == 422
        assert response.json()["errors"][0]["message"] == "Unprocessable upload."

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"map": "{}"}, "Missing multipart field 'operations'"),
            ({"operations": SINGLE}, "Missing multipart field 'map'"),
            ({"operations": "{nope", "map": "{}"}, "Invalid JSON in the 'operations'"),
            ({"operations": "3", "map": "{}"}, "Invalid type for the 'operations'"),
            ({"operations": SINGLE, "map": "[]"}, "Invalid type for the 'map'"),
            ({"operations": SINGLE, "map": '{"0": "variables.file"}'}, "entry key '0' array"),
            ({"operations": SINGLE, "map": '{"0": ["variables.nope"]}'}, "Invalid object path"),
            ({"operations": SINGLE, "map": '{"9": ["variables.file"]}'}, "File missing in the request."),
        ],
    )
    def test_malformed_requests_are_400(self, make_app, data: dict, message: str) -> None:
        app, _ = make_app()
        with TestClient(app) as client:
            response = client.post(
                "/graphql", data=data, files={"0": ("a.txt", b"x", "text/plain")}
            )
        assert response.status_code == 400
        error = response.json()["errors"][0]
        assert message in error["message"]
        assert error["extensions"]["code"] == BAD_USER_INPUT

    def test_too_many_files(self, make_app) -> None:
        app, _ = make_app(server_kwargs={"uploads": FileUploadOptions(max_files=1)})
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={
                    "operations": MULTIPLE,
                    "map": json.dumps({"a": ["variables.files.0"], "b": ["variables.files.1"]}),
                },
                files={"a": ("a", b"1", "text/plain"), "b": ("b", b"2", "text/plain")},
            )
        assert response.status_code == 413
        assert response.json()["errors"][0]["message"] == "1 max file uploads exceeded."

    def test_file_too_large(self, make_app) -> None:
        app, _ = make_app(server_kwargs={"uploads": {"max_file_size": 4}})
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={"operations": SINGLE, "map": json.dumps({"0": ["variables.file"]})},
                files={"0": ("big.bin", b"0123456789", "application/octet-stream")},
            )
        assert response.status_code == 413

    def test_field_too_large(self, make_app) -> None:
        app, _ = make_app(server_kwargs={"uploads": FileUploadOptions(max_field_size=10)})
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={"operations": SINGLE, "map": "{}"},
                files={"0": ("a.txt", b"x", "text/plain")},
            )
        assert response.status_code == 413

    def test_uploads_disabled_leaves_multipart_alone(self, make_app) -> None:
        app, server = make_app(server_kwargs={"uploads": False})
        assert server.uploads_config is None
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={"operations": SINGLE, "map": json.dumps({"0": ["variables.file"]})},
                files={"0": ("a.txt", b"x", "text/plain")},
            )
        # The body parser leaves multipart bodies empty, so there is nothing to run.
        assert response.status_code == 500
        assert response.text.startswith("POST body missing.")


# ── Cleanup ─────────────────────────────────────────────────────────────


class TestUploadCleanup:
    def test_files_closed_after_response(self, make_app) -> None:
        seen: List[UploadFile] = []

        def _upload_name(info: Any, file: UploadFile) -> str:
            seen.append(file)
            return file.filename

        app, _ = make_app(server_kwargs={"root_value": {**ROOT_VALUE, "uploadName": _upload_name}})
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={"operations": SINGLE, "map": json.dumps({"0": ["variables.file"]})},
                files={"0": ("notes.txt", b"hello", "text/plain")},
            )
        assert response.status_code == 200
        assert len(seen) == 1
        assert seen[0].file.closed

    def test_files_closed_after_rejection(self, make_app, monkeypatch: pytest.MonkeyPatch) -> None:
        forms: List[Any] = []
        original = uploads_stage.process_request

        async def _recording(request: Any, options: FileUploadOptions) -> Any:
            try:
                return await original(request, options)
            finally:
                forms.append(await request.form())

        monkeypatch.setattr(uploads_stage, "process_request", _recording)
        app, _ = make_app(server_kwargs={"uploads": {"max_file_size": 1}})
        with TestClient(app) as client:
            response = client.post(
                "/graphql",
                data={"operations": SINGLE, "map": json.dumps({"0": ["variables.file"]})},
                files={"0": ("big.bin", b"0123456789", "application/octet-stream")},
            )
        assert response.status_code == 413
        assert forms[0]["0"].file.closed
