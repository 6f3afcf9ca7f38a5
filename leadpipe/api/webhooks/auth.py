"""Shared-secret verification for inbound webhook requests."""

from __future__ import annotations

import typing as typ

from leadpipe.api.errors import WebhookAuthError
from leadpipe.common.hashing import DEFAULT_HASHER, Hasher

SECRET_HEADER = "x-audiencelab-secret"
SIGNATURE_HEADERS = ("x-audiencelab-signature", "x-webhook-signature")
_SIGNATURE_PREFIX = "sha256="


class WebhookAuthenticator:
    """Check a request against the configured webhook secret.

    A request passes when it carries the secret verbatim in
    ``x-audiencelab-secret`` or an HMAC-SHA256 hex signature of the raw
    body, optionally prefixed ``sha256=``. Without a configured secret every
    request is refused unless ``allow_unsigned`` is set.
    """

    def __init__(
        self,
        secret: str | None,
        hasher: Hasher = DEFAULT_HASHER,
        *,
        allow_unsigned: bool = False,
    ) -> None:
        """Store the shared secret and hashing capability."""
        self._secret = secret
        self._hasher = hasher
        self._allow_unsigned = allow_unsigned

    def verify(
        self, get_header: typ.Callable[[str], str | None], body: bytes
    ) -> None:
        """Raise :class:`WebhookAuthError` unless the request is authentic."""
        if not self._secret:
            if self._allow_unsigned:
                return
            raise WebhookAuthError.not_configured()

        provided = get_header(SECRET_HEADER)
        if provided is not None:
            if self._hasher.constant_time_equals(provided.strip(), self._secret):
                return
            raise WebhookAuthError.secret_mismatch()

        signature = next(
            (
                value
                for value in (get_header(name) for name in SIGNATURE_HEADERS)
                if value
            ),
            None,
        )
        if signature is None:
            raise WebhookAuthError.missing_credentials()

        expected = self._hasher.hmac_sha256_hex(self._secret.encode("utf-8"), body)
        candidate = signature.strip().lower().removeprefix(_SIGNATURE_PREFIX)
        if not self._hasher.constant_time_equals(candidate, expected):
            raise WebhookAuthError.signature_mismatch()
