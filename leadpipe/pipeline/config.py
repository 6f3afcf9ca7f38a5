"""Configuration for the ingestion pipeline and webhook surface.

Usage
-----
Create a configuration with defaults:

>>> config = PipelineConfig()
>>> config.batch_max_rows
1000

Or load from environment variables:

>>> import os
>>> os.environ["LEADPIPE_BATCH_MAX_ROWS"] = "250"
>>> PipelineConfig.from_env().batch_max_rows
250

"""

from __future__ import annotations

import dataclasses as dc
import os

from leadpipe.normalize.scoring import (
    DEFAULT_WEIGHTS,
    LEAD_CREATION_SCORE_THRESHOLD,
    ScoringWeights,
)

DEFAULT_MAX_BODY_BYTES = 3 * 1024 * 1024


def _raw(env_var: str) -> str | None:
    raw = os.environ.get(env_var, "")
    return raw.strip() or None


def _parse_flag(env_var: str) -> bool:
    """Read a boolean switch; only ``1``, ``true`` and ``yes`` enable it."""
    return (_raw(env_var) or "").lower() in {"1", "true", "yes"}


def _parse_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to a default."""
    raw = _raw(env_var)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def _parse_positive_float(env_var: str, default: float) -> float:
    """Read a positive number env var, falling back to a default."""
    raw = _raw(env_var)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def _parse_unit_interval(env_var: str, default: float) -> float:
    """Read a number in ``[0, 1]`` from the environment."""
    raw = _raw(env_var)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if not 0.0 <= value <= 1.0:
        msg = f"{env_var} must be between 0 and 1, got: {value}"
        raise ValueError(msg)
    return value


def _parse_weights(env_var: str, default: ScoringWeights) -> ScoringWeights:
    raw = _raw(env_var)
    if raw is None:
        return default
    try:
        return ScoringWeights.parse(raw)
    except ValueError as exc:
        msg = f"{env_var} is invalid: {exc}"
        raise ValueError(msg) from exc


@dc.dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Tunables for event processing.

    Attributes
    ----------
    store_timeout_seconds
        Upper bound for each store call before it is treated as transient.
    notify_timeout_seconds
        Upper bound for recipient resolution and notification dispatch.
    lead_score_threshold
        Minimum deliverability score for creating a lead.
    score_weights
        Component weights of the deliverability score.
    batch_max_rows
        Largest batch export bundle accepted in one request.

    """

    store_timeout_seconds: float = 5.0
    notify_timeout_seconds: float = 5.0
    lead_score_threshold: float = LEAD_CREATION_SCORE_THRESHOLD
    score_weights: ScoringWeights = DEFAULT_WEIGHTS
    batch_max_rows: int = 1000

    @classmethod
    def from_env(cls) -> PipelineConfig:
        """Create configuration from ``LEADPIPE_*`` environment variables.

        Reads ``LEADPIPE_STORE_TIMEOUT_SECONDS``,
        ``LEADPIPE_NOTIFY_TIMEOUT_SECONDS``, ``LEADPIPE_LEAD_SCORE_THRESHOLD``,
        ``LEADPIPE_SCORE_WEIGHTS`` (``name=value`` pairs) and
        ``LEADPIPE_BATCH_MAX_ROWS``; unset variables keep their defaults.

        Raises
        ------
        ValueError
            If a variable is set to an invalid value; the message names it.

        """
        defaults = cls()
        return cls(
            store_timeout_seconds=_parse_positive_float(
                "LEADPIPE_STORE_TIMEOUT_SECONDS", defaults.store_timeout_seconds
            ),
            notify_timeout_seconds=_parse_positive_float(
                "LEADPIPE_NOTIFY_TIMEOUT_SECONDS", defaults.notify_timeout_seconds
            ),
            lead_score_threshold=_parse_unit_interval(
                "LEADPIPE_LEAD_SCORE_THRESHOLD", defaults.lead_score_threshold
            ),
            score_weights=_parse_weights(
                "LEADPIPE_SCORE_WEIGHTS", defaults.score_weights
            ),
            batch_max_rows=_parse_positive_int(
                "LEADPIPE_BATCH_MAX_ROWS", defaults.batch_max_rows
            ),
        )


@dc.dataclass(frozen=True, slots=True)
class WebhookConfig:
    """Settings for the inbound webhook endpoint."""

    secret: str | None = None
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    allow_unsigned: bool = False

    @property
    def requires_auth(self) -> bool:
        """Return True when deliveries must carry valid credentials."""
        return bool(self.secret) or not self.allow_unsigned

    @classmethod
    def from_env(cls) -> WebhookConfig:
        """Read the ``LEADPIPE_WEBHOOK_*`` and ``LEADPIPE_MAX_BODY_BYTES`` vars."""
        return cls(
            secret=_raw("LEADPIPE_WEBHOOK_SECRET"),
            max_body_bytes=_parse_positive_int(
                "LEADPIPE_MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES
            ),
            allow_unsigned=_parse_flag("LEADPIPE_WEBHOOK_ALLOW_UNSIGNED"),
        )
