"""Unit tests for the leadpipe.runtime module."""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

import falcon.asgi
import falcon.testing
import pytest

from leadpipe import runtime

if typ.TYPE_CHECKING:
    from pathlib import Path


class TestCreateApp:
    """Tests for the runtime application factory."""

    def test_health_only_without_database(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without a database URL only the probes are served."""
        monkeypatch.delenv("LEADPIPE_DATABASE_URL", raising=False)
        app = runtime.create_app()
        assert isinstance(app, falcon.asgi.App)

        client = falcon.testing.TestClient(app)
        assert client.simulate_get("/health").status_code == HTTPStatus.OK
        assert client.simulate_get("/ready").json["mode"] == "health_only"

    def test_wires_pipeline_with_database(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """A database URL enables the webhook endpoint."""
        monkeypatch.setenv(
            "LEADPIPE_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/rt.db"
        )
        monkeypatch.setenv("LEADPIPE_CREATE_SCHEMA", "1")

        client = falcon.testing.TestClient(runtime.create_app())

        assert client.simulate_get("/ready").json["mode"] == "ingesting"

    def test_refuses_webhooks_without_secret(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """An ingesting server with no secret and no opt-out rejects deliveries."""
        monkeypatch.setenv(
            "LEADPIPE_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/rt.db"
        )
        monkeypatch.delenv("LEADPIPE_WEBHOOK_SECRET", raising=False)
        monkeypatch.delenv("LEADPIPE_WEBHOOK_ALLOW_UNSIGNED", raising=False)

        client = falcon.testing.TestClient(runtime.create_app())
        result = client.simulate_post(
            "/webhooks/audiencelab/superpixel",
            json={"EMAIL": "ann@example.com"},
            params={"workspace_id": "ws-1"},
        )

        assert result.status_code == HTTPStatus.UNAUTHORIZED
        assert result.json["reason"] == "not_configured"

    def test_invalid_pipeline_config_fails_fast(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Bad tunables stop startup instead of being ignored."""
        monkeypatch.setenv(
            "LEADPIPE_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/rt.db"
        )
        monkeypatch.setenv("LEADPIPE_BATCH_MAX_ROWS", "lots")

        with pytest.raises(ValueError, match="LEADPIPE_BATCH_MAX_ROWS"):
            runtime.create_app()


class TestParsePort:
    """Tests for port validation."""

    @pytest.mark.parametrize("raw", ["80", "65535"])
    def test_valid(self, raw: str) -> None:
        """Ports in range parse to integers."""
        assert runtime._parse_port(raw) == int(raw)  # noqa: SLF001

    @pytest.mark.parametrize("raw", ["0", "65536", "http"])
    def test_invalid_exits(self, raw: str) -> None:
        """Invalid ports terminate the process with status 1."""
        with pytest.raises(SystemExit) as excinfo:
            runtime._parse_port(raw)  # noqa: SLF001
        assert excinfo.value.code == 1


class TestRuntimeSettings:
    """Tests for RuntimeSettings.from_env()."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unset variables bind every interface on port 8080."""
        for name in ("LEADPIPE_HOST", "LEADPIPE_PORT", "LEADPIPE_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        assert runtime.RuntimeSettings.from_env() == runtime.RuntimeSettings()

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Host, port and level come from LEADPIPE_* variables."""
        monkeypatch.setenv("LEADPIPE_HOST", "127.0.0.1")
        monkeypatch.setenv("LEADPIPE_PORT", "9000")
        monkeypatch.setenv("LEADPIPE_LOG_LEVEL", "debug")

        settings = runtime.RuntimeSettings.from_env()

        assert settings == runtime.RuntimeSettings("127.0.0.1", 9000, "debug")
