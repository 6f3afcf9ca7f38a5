"""Webhook resource receiving AudienceLab deliveries.

``POST /webhooks/audiencelab/{source}`` accepts SuperPixel events,
AudienceSync rows and batch export bundles, runs them through the
ingestion pipeline and reports the per-event outcomes.

Usage
-----
Register the resource on the Falcon app::

    app.add_route(
        "/webhooks/audiencelab/{source}",
        WebhookResource(WebhookResourceDependencies(pipeline, config)),
    )

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon
import msgspec

from leadpipe.api.errors import (
    InvalidInputError,
    PayloadTooLargeError,
    UnknownSourceError,
    UnsupportedMediaError,
)
from leadpipe.api.webhooks.auth import WebhookAuthenticator
from leadpipe.common.hashing import DEFAULT_HASHER, Hasher
from leadpipe.common.sources import SourceKind
from leadpipe.intake.validator import unwrap_events
from leadpipe.pipeline.config import WebhookConfig
from leadpipe.pipeline.errors import TransientStoreReason

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from leadpipe.pipeline.service import IngestionPipeline, PipelineResult

__all__ = ["WebhookResource", "WebhookResourceDependencies"]

UNKNOWN_WORKSPACE_WARNING = TransientStoreReason.UNKNOWN_WORKSPACE.value


@dc.dataclass(frozen=True, slots=True)
class WebhookResourceDependencies:
    """Dependencies for ``WebhookResource``.

    Attributes
    ----------
    pipeline
        Ingestion pipeline that stores and processes events.
    config
        Secret and body-size settings for the endpoint.
    hasher
        Hashing capability used for signature checks.

    """

    pipeline: IngestionPipeline
    config: WebhookConfig = dc.field(default_factory=WebhookConfig)
    hasher: Hasher = DEFAULT_HASHER


def _is_json(content_type: str | None) -> bool:
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _warning(results: typ.Iterable[PipelineResult]) -> str | None:
    if any(result.reason == UNKNOWN_WORKSPACE_WARNING for result in results):
        return UNKNOWN_WORKSPACE_WARNING
    return None


class WebhookResource:
    """Resource handling inbound webhook deliveries.

    Checks run in a fixed order: source, content type, body size,
    authentication, JSON parsing, then payload validation inside the
    pipeline. Accepted deliveries answer 200 even when an event was
    rejected or failed, so upstream only redelivers on transport errors.
    """

    def __init__(self, dependencies: WebhookResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._pipeline = dependencies.pipeline
        self._config = dependencies.config
        self._authenticator = WebhookAuthenticator(
            dependencies.config.secret,
            dependencies.hasher,
            allow_unsigned=dependencies.config.allow_unsigned,
        )

    async def on_post(self, req: Request, resp: Response, *, source: str) -> None:
        """Handle POST request carrying one webhook delivery.

        Parameters
        ----------
        req
            Falcon request object.
        resp
            Falcon response object.
        source
            Source kind from the URL path.

        """
        kind = SourceKind.parse(source)
        if kind is None:
            raise UnknownSourceError(source)
        if not _is_json(req.content_type):
            raise UnsupportedMediaError(req.content_type)

        body = await self._read_body(req)
        self._authenticator.verify(req.get_header, body)
        try:
            parsed = msgspec.json.decode(body)
        except msgspec.DecodeError as exc:
            raise InvalidInputError.malformed_json() from exc

        workspace_id = req.get_param("workspace_id") or None
        if kind is SourceKind.BATCH_EXPORT:
            summary = await self._pipeline.ingest_batch(
                parsed, workspace_id=workspace_id
            )
            media = {"source": kind.value, **summary.as_dict()}
            warning = _warning(summary.results)
        else:
            events = (
                unwrap_events(parsed) if kind is SourceKind.SUPERPIXEL else [parsed]
            )
            results = await self._pipeline.ingest_events(
                events, kind, workspace_id=workspace_id
            )
            media = {
                "source": kind.value,
                "results": [result.as_dict() for result in results],
            }
            warning = _warning(results)

        if warning is not None:
            media["warning"] = warning
        resp.media = media
        resp.status = falcon.HTTP_200

    async def _read_body(self, req: Request) -> bytes:
        """Read the body, refusing anything over ``max_body_bytes``."""
        limit = self._config.max_body_bytes
        if req.content_length is not None and req.content_length > limit:
            raise PayloadTooLargeError(limit)
        body = await req.stream.read()
        if len(body) > limit:
            raise PayloadTooLargeError(limit)
        return body
