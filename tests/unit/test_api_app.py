"""Unit tests for leadpipe.api.app application factory.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_app.py

"""

from __future__ import annotations

from unittest import mock

import falcon.asgi
import falcon.testing
import pytest

from leadpipe.api.app import AppDependencies, create_app


@pytest.fixture
def health_client() -> falcon.testing.TestClient:
    """Build a test client for health-only mode."""
    return falcon.testing.TestClient(create_app())


@pytest.fixture
def full_client() -> falcon.testing.TestClient:
    """Build a test client with a mocked ingestion pipeline."""
    return falcon.testing.TestClient(
        create_app(AppDependencies(pipeline=mock.MagicMock()))
    )


class TestCreateAppHealthOnly:
    """Tests for create_app() without a pipeline."""

    def test_returns_falcon_app(self) -> None:
        """create_app() returns a Falcon ASGI App."""
        assert isinstance(create_app(), falcon.asgi.App), "expected Falcon ASGI App"

    def test_health(self, health_client: falcon.testing.TestClient) -> None:
        """Liveness answers ok."""
        result = health_client.simulate_get("/health")
        assert result.status == falcon.HTTP_200
        assert result.json == {"status": "ok"}

    def test_ready_reports_health_only(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """Readiness names the health-only mode."""
        result = health_client.simulate_get("/ready")
        assert result.status == falcon.HTTP_200
        assert result.json == {"status": "ready", "mode": "health_only"}

    def test_webhook_not_registered(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """Without a pipeline the webhook route does not exist."""
        result = health_client.simulate_post(
            "/webhooks/audiencelab/superpixel", json={}
        )
        assert result.status == falcon.HTTP_404


class TestCreateAppWithPipeline:
    """Tests for create_app() with a pipeline."""

    def test_ready_reports_ingesting(
        self, full_client: falcon.testing.TestClient
    ) -> None:
        """Readiness names the ingesting mode."""
        result = full_client.simulate_get("/ready")
        assert result.json == {"status": "ready", "mode": "ingesting"}

    def test_health_still_available(
        self, full_client: falcon.testing.TestClient
    ) -> None:
        """Health probes are registered in every mode."""
        assert full_client.simulate_get("/health").status == falcon.HTTP_200
