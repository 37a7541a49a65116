"""Tests for config loading, validation and logging setup."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest
from graphql import GraphQLSchema
from pydantic import ValidationError
from starlette.testclient import TestClient

from graphql_sentinel.config import (
    BodyParserOptions,
    CorsOptions,
    RegistrationConfig,
    SentinelConfig,
    find_config_file,
    load_sentinel_config,
)
from graphql_sentinel.config.env import expand_env_vars, is_production
from graphql_sentinel.constants import CONFIG_ENV_VAR, DEFAULT_PORT, ENV_VAR
from graphql_sentinel.display import logging_config
from graphql_sentinel.display.logging_config import setup_logging
from graphql_sentinel.errors import ConfigurationError
from graphql_sentinel.server.app import create_app

FULL_CONFIG = """\
server:
  host: 0.0.0.0
  port: 8080
graphql:
  schema: myapp.schema:schema
  path: ${GQL_PATH}
  playground_path: /explore
  debug: false
  uploads:
    max_files: 3
  cors:
    allow_origins: ["https://app.example"]
  body_parser:
    json_limit: 2048
logging:
  level: debug
"""


def _write(tmp_path: Path, name: str, text: str) -> str:
    fpath = tmp_path / name
    fpath.write_text(text, encoding="utf-8")
    return str(fpath)


@pytest.fixture()
def restore_logging():
    yield
    for name in logging_config._APP_LOGGERS:
        log = logging.getLogger(name)
        for handler in list(log.handlers):
            handler.close()
            log.removeHandler(handler)
        log.propagate = True
        log.setLevel(logging.NOTSET)
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            root.removeHandler(handler)


# ── Environment expansion ───────────────────────────────────────────────


class TestEnvExpansion:
    def test_nested_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GQL_TEST_HOST", "db.local")
        raw = {"a": "${GQL_TEST_HOST}:5432", "b": ["${GQL_TEST_HOST}", 3], "c": {"d": True}}
        assert expand_env_vars(raw) == {"a": "db.local:5432", "b": ["db.local", 3], "c": {"d": True}}

    def test_unset_placeholder_is_kept(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GQL_TEST_MISSING", raising=False)
        assert expand_env_vars("${GQL_TEST_MISSING}") == "${GQL_TEST_MISSING}"

    @pytest.mark.parametrize("value, expected", [("production", True), (" Production ", True), ("dev", False)])
    def test_is_production(self, monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
        monkeypatch.setenv(ENV_VAR, value)
        assert is_production() is expected


# ── Loader ──────────────────────────────────────────────────────────────


class TestLoader:
    def test_full_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GQL_PATH", "/api")
        config = load_sentinel_config(_write(tmp_path, "config.yaml", FULL_CONFIG))

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 8080
        assert config.graphql.schema_ref == "myapp.schema:schema"
        assert config.graphql.path == "/api"
        assert config.graphql.uploads.max_files == 3
        assert config.graphql.cors.allow_origins == ["https://app.example"]
        assert config.logging.level == "DEBUG"

        kwargs = config.graphql.registration_kwargs()
        assert kwargs["path"] == "/api"
        assert kwargs["playground_path"] == "/explore"
        assert isinstance(kwargs["body_parser_config"], BodyParserOptions)
        assert kwargs["body_parser_config"].json_limit == 2048

    def test_no_file_means_defaults(self) -> None:
        config = load_sentinel_config(None)
        assert config.server.port == DEFAULT_PORT
        assert config.graphql.path == "/graphql"
        assert config.graphql.cors is True

    def test_empty_file_means_defaults(self, tmp_path: Path) -> None:
        assert load_sentinel_config(_write(tmp_path, "config.yml", "")) == SentinelConfig()

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported config file extension"):
            load_sentinel_config(_write(tmp_path, "config.json", "{}"))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Error reading configuration file"):
            load_sentinel_config(str(tmp_path / "absent.yaml"))

    def test_non_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="must be a YAML mapping"):
            load_sentinel_config(_write(tmp_path, "config.yaml", "- a\n- b\n"))

    def test_validation_errors_are_readable(self, tmp_path: Path) -> None:
        text = "server:\n  port: 70000\ngraphql:\n  path: graphql\n"
        with pytest.raises(ConfigurationError) as info:
            load_sentinel_config(_write(tmp_path, "config.yaml", text))
        message = str(info.value)
        assert "server → port" in message
        assert "graphql → path" in message


class TestFindConfigFile:
    def test_env_var_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write(tmp_path, "config.yaml", "")
        monkeypatch.setenv(CONFIG_ENV_VAR, "/etc/sentinel.yaml")
        assert find_config_file([str(tmp_path)]) == "/etc/sentinel.yaml"

    def test_search_order(self, tmp_path: Path) -> None:
        first, second = tmp_path / "a", tmp_path / "b"
        first.mkdir()
        second.mkdir()
        _write(second, "config.yml", "")
        _write(second, "config.yaml", "")
        assert find_config_file([str(first), str(second)]) == os.path.join(str(second), "config.yaml")

    def test_nothing_found(self, tmp_path: Path) -> None:
        assert find_config_file([str(tmp_path)]) is None


# ── Models ──────────────────────────────────────────────────────────────


class TestRegistrationConfig:
    def test_explorer_defaults_to_path(self) -> None:
        config = RegistrationConfig(path="/api")
        assert config.explorer_path == "/api"
        assert RegistrationConfig(path="/api", playground_path="/ui").explorer_path == "/ui"

    def test_paths_must_be_absolute(self) -> None:
        with pytest.raises(ValidationError):
            RegistrationConfig(path="graphql")
        with pytest.raises(ValidationError):
            RegistrationConfig(playground_path="ui")

    def test_frozen(self) -> None:
        config = RegistrationConfig()
        with pytest.raises(ValidationError):
            config.path = "/other"

    def test_option_objects_are_accepted(self) -> None:
        config = RegistrationConfig(cors=CorsOptions(max_age=5), body_parser_config=False)
        assert config.cors.max_age == 5
        assert config.body_parser_config is False


# ── create_app ──────────────────────────────────────────────────────────


class TestCreateApp:
    def test_config_drives_registration(self, schema: GraphQLSchema) -> None:
        config = SentinelConfig.model_validate(
            {"graphql": {"path": "/api", "disable_health_check": True, "playground": False}}
        )
        app = create_app(schema, config, root_value={"hello": lambda info, name=None: "hi"})
        server = app.state.graphql_server
        assert server.graphql_path == "/api"
        assert server.playground_options is None

        with TestClient(app) as client:
            assert client.post("/api", json={"query": "{ hello }"}).json() == {"data": {"hello": "hi"}}
            assert client.post("/graphql", json={"query": "{ hello }"}).status_code == 404
            assert client.get("/.well-known/apollo/server-health").status_code == 404

    def test_defaults(self, schema: GraphQLSchema) -> None:
        app = create_app(schema)
        with TestClient(app) as client:
            health = client.get("/.well-known/apollo/server-health")
        assert health.json() == {"status": "pass"}


# ── Logging ─────────────────────────────────────────────────────────────


class TestSetupLogging:
    def test_writes_file_at_level(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_logging: None
    ) -> None:
        monkeypatch.chdir(tmp_path)
        log_fpath, level = setup_logging("debug", quiet=True)
        assert level == "DEBUG"
        assert log_fpath.startswith("logs")
        assert log_fpath.endswith("_DEBUG.log")

        logging.getLogger("graphql_sentinel.server").debug("hello from the test")
        for handler in logging.getLogger("graphql_sentinel").handlers:
            handler.flush()
        assert "hello from the test" in (tmp_path / log_fpath).read_text(encoding="utf-8")

    def test_quiet_has_no_console(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_logging: None
    ) -> None:
        monkeypatch.chdir(tmp_path)
        setup_logging("info", quiet=True)
        handlers = logging.getLogger("graphql_sentinel").handlers
        assert handlers
        assert all(isinstance(h, logging.FileHandler) for h in handlers)

    def test_invalid_level_falls_back(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
        restore_logging: None,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _, level = setup_logging("verbose")
        assert level == "INFO"
        assert "invalid log level 'verbose'" in capsys.readouterr().err
