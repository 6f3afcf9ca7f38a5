"""Domain exceptions and Falcon error handlers for the API layer.

Usage
-----
Register error handlers on the Falcon app::

    from leadpipe.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import enum
import typing as typ

import falcon

from leadpipe.intake.errors import PayloadValidationError
from leadpipe.pipeline.errors import TransientStoreError

if typ.TYPE_CHECKING:
    from falcon.asgi import App, Request, Response

__all__ = [
    "InvalidInputError",
    "PayloadTooLargeError",
    "UnknownSourceError",
    "UnsupportedMediaError",
    "WebhookAuthError",
    "WebhookAuthReason",
    "register_error_handlers",
]

# Seconds upstream senders should wait before redelivering after a 503.
RETRY_AFTER_SECONDS = 30


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)

    @classmethod
    def malformed_json(cls) -> InvalidInputError:
        """Create an error for a body that is not parseable JSON."""
        return cls("request body is not valid JSON", field="$")


class UnknownSourceError(Exception):
    """Raised when the webhook path names no known source kind."""

    def __init__(self, source: str) -> None:
        """Record the unrecognised source segment."""
        self.source = source
        super().__init__(f"No webhook source named {source!r} exists.")


class UnsupportedMediaError(Exception):
    """Raised when a webhook body is not declared as JSON."""

    def __init__(self, content_type: str | None) -> None:
        """Record the declared content type."""
        self.content_type = content_type
        super().__init__(f"expected application/json, got {content_type or 'none'}")


class PayloadTooLargeError(Exception):
    """Raised when a webhook body exceeds the configured size bound."""

    def __init__(self, limit: int) -> None:
        """Record the byte limit that was exceeded."""
        self.limit = limit
        super().__init__(f"request body exceeds {limit} bytes")


class WebhookAuthReason(enum.StrEnum):
    """Machine-readable reasons for webhook authentication failures."""

    MISSING_CREDENTIALS = "missing_credentials"
    NOT_CONFIGURED = "not_configured"
    SECRET_MISMATCH = "secret_mismatch"
    SIGNATURE_MISMATCH = "signature_mismatch"


class WebhookAuthError(Exception):
    """Raised when a webhook request fails the shared-secret check."""

    def __init__(self, message: str, reason: WebhookAuthReason) -> None:
        """Store a machine-readable reason for programmatic handling."""
        super().__init__(message)
        self.reason = reason

    @classmethod
    def not_configured(cls) -> WebhookAuthError:
        """Create an error for a server with no secret and no opt-out."""
        return cls(
            "webhook secret is not configured",
            WebhookAuthReason.NOT_CONFIGURED,
        )

    @classmethod
    def missing_credentials(cls) -> WebhookAuthError:
        """Create an error for a request with neither secret nor signature."""
        return cls(
            "webhook secret or signature header required",
            WebhookAuthReason.MISSING_CREDENTIALS,
        )

    @classmethod
    def secret_mismatch(cls) -> WebhookAuthError:
        """Create an error for a shared-secret header that does not match."""
        return cls("webhook secret mismatch", WebhookAuthReason.SECRET_MISMATCH)

    @classmethod
    def signature_mismatch(cls) -> WebhookAuthError:
        """Create an error for an HMAC signature that does not match the body."""
        return cls(
            "webhook signature mismatch", WebhookAuthReason.SIGNATURE_MISMATCH
        )


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_payload_validation(
    _req: Request,
    resp: Response,
    ex: PayloadValidationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``PayloadValidationError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    resp.media = {
        "title": "Invalid payload",
        "description": ex.reason,
        "field": ex.field,
    }


async def handle_unknown_source(
    _req: Request,
    resp: Response,
    ex: UnknownSourceError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``UnknownSourceError`` to an HTTP 404 JSON response."""
    resp.status = falcon.HTTP_404
    resp.media = {"title": "Source not found", "description": str(ex)}


async def handle_unsupported_media(
    _req: Request,
    resp: Response,
    ex: UnsupportedMediaError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``UnsupportedMediaError`` to an HTTP 415 JSON response."""
    resp.status = falcon.HTTP_415
    resp.media = {"title": "Unsupported media type", "description": str(ex)}


async def handle_payload_too_large(
    _req: Request,
    resp: Response,
    ex: PayloadTooLargeError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``PayloadTooLargeError`` to an HTTP 413 JSON response."""
    resp.status = falcon.HTTP_413
    resp.media = {"title": "Payload too large", "description": str(ex)}


async def handle_webhook_auth(
    _req: Request,
    resp: Response,
    ex: WebhookAuthError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``WebhookAuthError`` to an HTTP 401 JSON response."""
    resp.status = falcon.HTTP_401
    resp.media = {
        "title": "Unauthorized",
        "description": str(ex),
        "reason": ex.reason.value,
    }


async def handle_transient_store(
    _req: Request,
    resp: Response,
    ex: TransientStoreError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``TransientStoreError`` to HTTP 503 so the sender redelivers."""
    resp.status = falcon.HTTP_503
    resp.set_header("Retry-After", str(RETRY_AFTER_SECONDS))
    resp.media = {"title": "Service unavailable", "description": str(ex)}


def register_error_handlers(app: App) -> None:
    """Register every domain error handler on ``app``."""
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(PayloadValidationError, handle_payload_validation)
    app.add_error_handler(UnknownSourceError, handle_unknown_source)
    app.add_error_handler(UnsupportedMediaError, handle_unsupported_media)
    app.add_error_handler(PayloadTooLargeError, handle_payload_too_large)
    app.add_error_handler(WebhookAuthError, handle_webhook_auth)
    app.add_error_handler(TransientStoreError, handle_transient_store)
