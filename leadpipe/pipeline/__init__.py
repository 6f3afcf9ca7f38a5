"""Ingestion pipeline orchestration."""

from __future__ import annotations

from .config import PipelineConfig, WebhookConfig
from .errors import TransientStoreError, TransientStoreReason
from .factory import build_pipeline
from .observability import (
    ErrorCategory,
    PipelineEventLogger,
    PipelineEventType,
    categorize_error,
)
from .service import BatchSummary, IngestionPipeline, PipelineResult, RowError
from .storage import init_pipeline_storage

__all__ = [
    "BatchSummary",
    "ErrorCategory",
    "IngestionPipeline",
    "PipelineConfig",
    "PipelineEventLogger",
    "PipelineEventType",
    "PipelineResult",
    "RowError",
    "TransientStoreError",
    "TransientStoreReason",
    "WebhookConfig",
    "build_pipeline",
    "categorize_error",
    "init_pipeline_storage",
]
