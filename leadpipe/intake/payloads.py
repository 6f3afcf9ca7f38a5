"""Typed payload variants produced by the schema validator.

Upstream field names are canonicalised to UPPER_SNAKE case before decoding,
so the resolution struct declares them in that form.
"""

from __future__ import annotations

import typing as typ

import msgspec

# Multi-valued resolution fields arrive either as delimited strings or arrays.
MultiValue: typ.TypeAlias = str | list[str] | None
PhoneValue: typ.TypeAlias = str | int | list[str | int] | None


class ResolutionFields(msgspec.Struct, frozen=True, omit_defaults=True):
    """Identity-resolution fields shared by every payload family."""

    EMAIL: str | None = None
    EMAILS: MultiValue = None
    VERIFIED_EMAIL: bool | None = None
    VERIFIED_EMAILS: MultiValue = None
    EMAIL_VALIDATION_STATUS: str | None = None
    PERSONAL_EMAILS: MultiValue = None
    PERSONAL_EMAIL_VALIDATION_STATUS: str | None = None
    BUSINESS_EMAILS: MultiValue = None
    BUSINESS_EMAIL_VALIDATION_STATUS: str | None = None
    PHONE: PhoneValue = None
    PHONES: PhoneValue = None
    PERSONAL_PHONE: PhoneValue = None
    MOBILE_PHONE: PhoneValue = None
    MOBILE_PHONE_DNC: PhoneValue = None
    FIRST_NAME: str | None = None
    LAST_NAME: str | None = None
    COMPANY_NAME: str | None = None
    COMPANY: str | None = None
    COMPANY_DOMAIN: str | None = None
    COMPANY_INDUSTRY: str | None = None
    JOB_TITLE: str | None = None
    PERSONAL_CITY: str | None = None
    CITY: str | None = None
    PERSONAL_STATE: str | None = None
    STATE: str | None = None
    PERSONAL_ZIP: str | int | None = None
    ZIP: str | int | None = None
    EVENT: str | None = None
    EVENT_TYPE: str | None = None
    TYPE: str | None = None
    IP_ADDRESS: str | None = None
    IP: str | None = None
    CLIENT_IP: str | None = None
    PIXEL_ID: str | None = None
    EVENT_ID: str | int | None = None
    INTENT_TOPICS: MultiValue = None
    TOPICS: MultiValue = None
    LANDING_URL: str | None = None
    PAGE_URL: str | None = None


class SuperPixelEvent(msgspec.Struct, frozen=True, tag="superpixel"):
    """Real-time visitor identification ping from the SuperPixel."""

    resolution: ResolutionFields
    event_id: str | None = None


class AudienceSyncRow(msgspec.Struct, frozen=True, tag="audiencesync"):
    """One row pushed by an AudienceSync destination."""

    resolution: ResolutionFields
    event_id: str | None = None
    segment_id: str | None = None
    segment_name: str | None = None


class BatchExportRow(msgspec.Struct, frozen=True, tag="batch_export"):
    """One row of a batch export bundle."""

    resolution: ResolutionFields
    event_id: str | None = None
    export_id: str | None = None
    row_index: int | None = None


TypedPayload: typ.TypeAlias = SuperPixelEvent | AudienceSyncRow | BatchExportRow


class BatchExportBundle(msgspec.Struct, frozen=True):
    """Unvalidated rows of a batch export; rows are validated one by one."""

    rows: list[typ.Any]
    export_id: str | None = None
