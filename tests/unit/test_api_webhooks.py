"""Unit tests for the AudienceLab webhook resource."""

from __future__ import annotations

import hashlib
import hmac
import json
import typing as typ
from unittest import mock

import falcon
import falcon.testing
import pytest

from leadpipe.api.app import AppDependencies, create_app
from leadpipe.intake import PayloadValidationError
from leadpipe.leads import Lead
from leadpipe.ledger import Outcome
from leadpipe.pipeline import (
    BatchSummary,
    PipelineResult,
    RowError,
    TransientStoreError,
    WebhookConfig,
)
from tests.helpers.payloads import WORKSPACE_ID, superpixel_event

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leadpipe.pipeline import IngestionPipeline
    from tests.helpers.pipeline_doubles import RecordingDispatcher

SUPERPIXEL_PATH = "/webhooks/audiencelab/superpixel"
JSON_HEADERS = {"Content-Type": "application/json"}
CREATED = PipelineResult(raw_event_id=1, outcome=Outcome.CREATED, lead_id="lead-1")


@pytest.fixture
def pipeline_mock() -> mock.MagicMock:
    """Return a pipeline double whose ingest calls succeed."""
    pipeline = mock.MagicMock()
    pipeline.ingest_events = mock.AsyncMock(return_value=[CREATED])
    pipeline.ingest_batch = mock.AsyncMock(return_value=BatchSummary())
    return pipeline


def _client(
    pipeline: object, config: WebhookConfig | None = None
) -> falcon.testing.TestClient:
    deps = AppDependencies(
        pipeline=typ.cast("IngestionPipeline", pipeline),
        webhook_config=config or WebhookConfig(allow_unsigned=True),
    )
    return falcon.testing.TestClient(create_app(deps))


def _post(
    client: falcon.testing.TestClient,
    body: object,
    *,
    path: str = SUPERPIXEL_PATH,
    headers: dict[str, str] | None = None,
) -> falcon.testing.Result:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode()
    return client.simulate_post(
        path, body=raw, headers={**JSON_HEADERS, **(headers or {})}
    )


class TestRequestChecks:
    """Tests for the checks that run before the pipeline."""

    def test_unknown_source_is_404(self, pipeline_mock: mock.MagicMock) -> None:
        """Only known source kinds are routed."""
        result = _post(
            _client(pipeline_mock), {}, path="/webhooks/audiencelab/carrier-pigeon"
        )
        assert result.status == falcon.HTTP_404
        pipeline_mock.ingest_events.assert_not_called()

    def test_non_json_is_415(self, pipeline_mock: mock.MagicMock) -> None:
        """Bodies must be declared as JSON."""
        result = _client(pipeline_mock).simulate_post(
            SUPERPIXEL_PATH, body=b"a=b", headers={"Content-Type": "text/plain"}
        )
        assert result.status == falcon.HTTP_415

    def test_oversized_body_is_413(self, pipeline_mock: mock.MagicMock) -> None:
        """Bodies over the configured limit are refused."""
        client = _client(pipeline_mock, WebhookConfig(max_body_bytes=16))
        result = _post(client, {"EMAIL": "someone@example.com"})
        assert result.status == falcon.HTTP_413
        pipeline_mock.ingest_events.assert_not_called()

    def test_unconfigured_secret_is_401(self, pipeline_mock: mock.MagicMock) -> None:
        """Without a secret or an opt-out, nothing reaches the pipeline."""
        client = _client(pipeline_mock, WebhookConfig())
        result = _post(
            client, superpixel_event(), headers={"X-AudienceLab-Secret": "guess"}
        )
        assert result.status == falcon.HTTP_401
        assert result.json["reason"] == "not_configured"
        pipeline_mock.ingest_events.assert_not_called()

    def test_missing_secret_is_401(self, pipeline_mock: mock.MagicMock) -> None:
        """With a secret configured, anonymous deliveries are refused."""
        client = _client(pipeline_mock, WebhookConfig(secret="s3cret"))
        result = _post(client, superpixel_event())
        assert result.status == falcon.HTTP_401
        assert result.json["reason"] == "missing_credentials"

    def test_signed_body_is_accepted(self, pipeline_mock: mock.MagicMock) -> None:
        """An HMAC over the raw body authenticates the delivery."""
        body = json.dumps(superpixel_event()).encode()
        signature = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        client = _client(pipeline_mock, WebhookConfig(secret="s3cret"))

        result = _post(
            client, body, headers={"X-AudienceLab-Signature": f"sha256={signature}"}
        )

        assert result.status == falcon.HTTP_200

    def test_malformed_json_is_400(self, pipeline_mock: mock.MagicMock) -> None:
        """Unparseable bodies never reach the pipeline."""
        result = _post(_client(pipeline_mock), b"{not json")
        assert result.status == falcon.HTTP_400
        assert result.json["field"] == "$"
        pipeline_mock.ingest_events.assert_not_called()


class TestResponses:
    """Tests for mapping pipeline results onto HTTP responses."""

    def test_single_event(self, pipeline_mock: mock.MagicMock) -> None:
        """Accepted events answer 200 with their outcome."""
        result = _post(_client(pipeline_mock), superpixel_event())

        assert result.status == falcon.HTTP_200
        assert result.json["source"] == "superpixel"
        assert result.json["results"] == [CREATED.as_dict()]
        assert "warning" not in result.json

    def test_result_array_is_split(self, pipeline_mock: mock.MagicMock) -> None:
        """SuperPixel ``result`` arrays become one event each."""
        events = [superpixel_event(), superpixel_event(EVENT_ID="evt-2")]

        _post(_client(pipeline_mock), {"result": events})

        args, kwargs = pipeline_mock.ingest_events.call_args
        assert args[0] == events
        assert kwargs == {"workspace_id": None}

    def test_workspace_query_parameter(self, pipeline_mock: mock.MagicMock) -> None:
        """The workspace may be named in the query string."""
        _client(pipeline_mock).simulate_post(
            SUPERPIXEL_PATH,
            body=json.dumps(superpixel_event()).encode(),
            headers=JSON_HEADERS,
            params={"workspace_id": WORKSPACE_ID},
        )
        assert pipeline_mock.ingest_events.call_args.kwargs == {
            "workspace_id": WORKSPACE_ID
        }

    def test_validation_error_is_400(self, pipeline_mock: mock.MagicMock) -> None:
        """Validator failures name the offending field."""
        pipeline_mock.ingest_events.side_effect = PayloadValidationError.type_mismatch(
            "EMAIL", "string", ["a"]
        )

        result = _post(_client(pipeline_mock), {"EMAIL": ["a"]})

        assert result.status == falcon.HTTP_400
        assert result.json["field"] == "EMAIL"

    def test_transient_store_failure_is_503(
        self, pipeline_mock: mock.MagicMock
    ) -> None:
        """Store outages ask the sender to redeliver."""
        pipeline_mock.ingest_events.side_effect = TransientStoreError.timed_out(
            "store raw event", 5
        )

        result = _post(_client(pipeline_mock), superpixel_event())

        assert result.status == falcon.HTTP_503
        assert result.headers["Retry-After"] == "30"

    def test_unknown_workspace_warns(self, pipeline_mock: mock.MagicMock) -> None:
        """Pending events for unmapped pixels are flagged in the body."""
        pipeline_mock.ingest_events.return_value = [
            PipelineResult(
                raw_event_id=4,
                outcome=Outcome.ERROR,
                reason="unknown_workspace",
                retryable=True,
            )
        ]

        result = _post(_client(pipeline_mock), superpixel_event(PIXEL_ID="px-x"))

        assert result.status == falcon.HTTP_200
        assert result.json["warning"] == "unknown_workspace"

    def test_batch_export(self, pipeline_mock: mock.MagicMock) -> None:
        """Batch bundles answer with the run summary."""
        pipeline_mock.ingest_batch.return_value = BatchSummary(
            export_id="exp-1",
            results=[CREATED],
            errors=[RowError(row_index=1, field="rows[1].EMAIL", reason="bad")],
        )
        bundle = {"export_id": "exp-1", "rows": [superpixel_event(), {}]}

        result = _post(
            _client(pipeline_mock), bundle, path="/webhooks/audiencelab/batch_export"
        )

        assert result.status == falcon.HTTP_200
        assert result.json["source"] == "batch_export"
        assert result.json["processed"] == 1
        assert result.json["errors"] == [
            {"row_index": 1, "field": "rows[1].EMAIL", "reason": "bad"}
        ]
        pipeline_mock.ingest_batch.assert_awaited_once_with(bundle, workspace_id=None)


@pytest.mark.asyncio
async def test_delivery_end_to_end(
    pipeline: IngestionPipeline,
    dispatcher: RecordingDispatcher,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """A real delivery creates and routes a lead; redelivery is a duplicate."""
    app = create_app(
        AppDependencies(pipeline=pipeline, webhook_config=WebhookConfig(secret="k"))
    )
    params = {"workspace_id": WORKSPACE_ID}
    body = json.dumps(superpixel_event()).encode()
    headers = {
        **JSON_HEADERS,
        "X-Webhook-Signature": hmac.new(b"k", body, hashlib.sha256).hexdigest(),
    }

    async with falcon.testing.ASGIConductor(app) as conductor:
        first = await conductor.simulate_post(
            SUPERPIXEL_PATH, body=body, headers=headers, params=params
        )
        second = await conductor.simulate_post(
            SUPERPIXEL_PATH, body=body, headers=headers, params=params
        )

    assert first.status == falcon.HTTP_200
    created = first.json["results"][0]
    assert created["outcome"] == "created"
    assert created["notified"] == ["user-1"]
    assert second.json["results"][0]["duplicate"] is True
    assert len(dispatcher.dispatched) == 1
    async with session_factory() as session:
        lead = await session.get(Lead, created["lead_id"])
        assert lead is not None
        assert lead.workspace_id == WORKSPACE_ID
