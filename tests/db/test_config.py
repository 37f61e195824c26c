"""Tests for SurrealDB configuration."""

import pytest

from schemaledger.db.config import Environment, SurrealConfig, get_database_name


class TestSurrealConfig:
    """Tests for SurrealConfig."""

    def test_defaults(self, monkeypatch):
        for var in (
            "SURREAL_URL",
            "SURREAL_NAMESPACE",
            "SURREAL_DATABASE",
            "MIGRATIONS_PATH",
            "MIGRATIONS_TABLE",
        ):
            monkeypatch.delenv(var, raising=False)

        config = SurrealConfig()

        assert config.url == "ws://localhost:8000/rpc"
        assert config.namespace == "schemaledger"
        assert config.database == "default"
        assert config.migrations_path == "./migrations"
        assert config.migrations_table == "_migrations"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SURREAL_URL", "wss://db.example.com/rpc")
        monkeypatch.setenv("SURREAL_DATABASE", "tenant")
        monkeypatch.setenv("SURREAL_QUERY_TIMEOUT", "12.5")
        monkeypatch.setenv("MIGRATIONS_TABLE", "schema_log")

        config = SurrealConfig()

        assert config.is_secure is True
        assert config.database == "tenant"
        assert config.query_timeout == 12.5
        assert config.migrations_table == "schema_log"

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("ws://localhost:8000/rpc", Environment.DEVELOPMENT),
            ("ws://127.0.0.1:8000/rpc", Environment.DEVELOPMENT),
            ("wss://staging.example.com/rpc", Environment.STAGING),
            ("wss://db.example.com/rpc", Environment.PRODUCTION),
        ],
    )
    def test_environment(self, url, expected):
        assert SurrealConfig(url=url).environment == expected

    def test_validate_local(self):
        assert SurrealConfig(url="ws://localhost:8000/rpc", namespace="ns", user="root").validate() == []

    def test_validate_bad_scheme(self):
        errors = SurrealConfig(url="http://localhost:8000").validate()

        assert "SURREAL_URL must start with ws:// or wss://" in errors

    def test_validate_table_identifier(self):
        errors = SurrealConfig(url="ws://localhost:8000/rpc", migrations_table="bad; DROP").validate()

        assert "MIGRATIONS_TABLE must be a plain identifier" in errors

    def test_validate_production(self):
        errors = SurrealConfig(url="ws://db.example.com/rpc", password="").validate()

        assert "SURREAL_PASS is required in production" in errors
        assert "Production should use wss:// (secure WebSocket)" in errors


class TestGetDatabaseName:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("my-app", "my_app"),
            ("My Project", "my_project"),
            ("tenant.01!", "tenant01"),
            ("2024app", "p_2024app"),
            ("!!!", "default"),
            (None, "default"),
        ],
    )
    def test_sanitizes(self, name, expected):
        assert get_database_name(name) == expected

    def test_custom_default(self):
        assert get_database_name("", default="main") == "main"
