"""Shared helpers used across the ingestion layers."""
