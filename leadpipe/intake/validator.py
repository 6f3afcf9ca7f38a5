"""Narrow untyped webhook JSON into one of the typed payload variants.

Everything here is pure: no I/O, no logging, no clock. Callers decide what
to do with a :class:`PayloadValidationError`.
"""

from __future__ import annotations

import typing as typ

import msgspec

from leadpipe.common.sources import SourceKind
from leadpipe.intake.errors import PayloadValidationError
from leadpipe.intake.payloads import (
    AudienceSyncRow,
    BatchExportBundle,
    BatchExportRow,
    ResolutionFields,
    SuperPixelEvent,
    TypedPayload,
)

# Nested containers flattened into the resolution view, lowest priority first.
_NESTED_SOURCES: tuple[tuple[str, ...], ...] = (
    ("event", "data"),
    ("event_data",),
    ("resolution",),
)
_MAPPED_FIELD_KEYS = ("mapped_fields", "fields")
_ENVELOPE_KEY = "data"


def canonical_key(key: str) -> str:
    """Canonicalise an upstream field name to UPPER_SNAKE case.

    >>> canonical_key("first-name")
    'FIRST_NAME'
    """
    return key.strip().replace("-", "_").replace(" ", "_").replace(".", "_").upper()


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def canonicalise_fields(raw: typ.Mapping[str, typ.Any]) -> dict[str, typ.Any]:
    """Return ``raw`` with canonical keys.

    When two spellings collide (``email`` and ``EMAIL``) the key that was
    already upper case wins unless its value is blank.
    """
    canonical: dict[str, typ.Any] = {}
    upper_first = sorted(
        raw.items(), key=lambda item: str(item[0]) != str(item[0]).upper()
    )
    for key, value in upper_first:
        name = canonical_key(str(key))
        if name not in canonical or _is_blank(canonical[name]):
            canonical[name] = value
    return canonical


def _require_object(value: object, field: str) -> dict[str, typ.Any]:
    if not isinstance(value, dict):
        raise PayloadValidationError.type_mismatch(field, "object", value)
    return value


def _dig(raw: dict[str, typ.Any], path: tuple[str, ...]) -> object:
    current: object = raw
    for part in path:
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def flatten_payload(raw: dict[str, typ.Any]) -> dict[str, typ.Any]:
    """Merge nested resolution containers into one canonical mapping.

    ``resolution`` and ``event_data`` must be objects when present; a
    string ``event`` is an event name, not a container, and is left alone.
    Top-level keys always win over nested ones.
    """
    merged: dict[str, typ.Any] = {}
    for path in _NESTED_SOURCES:
        nested = _dig(raw, path)
        if nested is None:
            continue
        if path == ("event", "data") and not isinstance(nested, dict):
            continue
        merged.update(canonicalise_fields(_require_object(nested, ".".join(path))))
    top_level = {
        k: v
        for k, v in raw.items()
        if k not in {"resolution", "event_data"}
        and not (k == "event" and isinstance(v, dict))
    }
    merged.update(
        {k: v for k, v in canonicalise_fields(top_level).items() if not _is_blank(v)}
    )
    return merged


def _decode_resolution(
    fields: dict[str, typ.Any], *, prefix: str | None = None
) -> ResolutionFields:
    try:
        return msgspec.convert(fields, type=ResolutionFields, strict=False)
    except msgspec.ValidationError as exc:
        raise PayloadValidationError.from_msgspec(exc, prefix=prefix) from exc


def _optional_text(value: object, field: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, str | int):
        raise PayloadValidationError.type_mismatch(field, "string", value)
    text = str(value).strip()
    return text or None


def _event_id(resolution: ResolutionFields) -> str | None:
    return _optional_text(resolution.EVENT_ID, "EVENT_ID")


def unwrap_envelope(raw: object) -> object:
    """Strip one ``{"data": {...}}`` envelope from an AudienceSync payload.

    Payloads that already carry mapped fields pass through unchanged, so
    applying this twice is the same as applying it once.
    """
    if not isinstance(raw, dict):
        return raw
    if any(key in raw for key in _MAPPED_FIELD_KEYS):
        return raw
    inner = raw.get(_ENVELOPE_KEY)
    if isinstance(inner, dict):
        return inner
    return raw


def unwrap_events(raw: object) -> list[object]:
    """Split a SuperPixel delivery into individual events.

    Deliveries may be a single object, a bare array, or ``{"result": [...]}``.
    """
    if isinstance(raw, list):
        return list(raw)
    if isinstance(raw, dict) and isinstance(raw.get("result"), list):
        return list(raw["result"])
    return [raw]


def _validate_superpixel(raw: object) -> SuperPixelEvent:
    body = _require_object(raw, "$")
    resolution = _decode_resolution(flatten_payload(body))
    return SuperPixelEvent(resolution=resolution, event_id=_event_id(resolution))


def _validate_audiencesync(raw: object) -> AudienceSyncRow:
    body = _require_object(unwrap_envelope(raw), "$")
    key = next((k for k in _MAPPED_FIELD_KEYS if k in body), None)
    if key is None:
        raise PayloadValidationError.missing_field("mapped_fields")
    mapped = _require_object(body[key], key)
    resolution = _decode_resolution(canonicalise_fields(mapped), prefix=key)
    return AudienceSyncRow(
        resolution=resolution,
        event_id=_optional_text(body.get("event_id", body.get("id")), "event_id")
        or _event_id(resolution),
        segment_id=_optional_text(body.get("segment_id"), "segment_id"),
        segment_name=_optional_text(body.get("segment_name"), "segment_name"),
    )


def validate_batch_row(
    raw: object, *, export_id: str | None = None, row_index: int | None = None
) -> BatchExportRow:
    """Validate one batch-export row.

    Rows without their own ``EVENT_ID`` get a stable id derived from the
    export id and row position when the bundle carries an export id.
    """
    field = "$" if row_index is None else f"rows[{row_index}]"
    body = _require_object(raw, field)
    prefix = None if row_index is None else field
    resolution = _decode_resolution(flatten_payload(body), prefix=prefix)
    event_id = _event_id(resolution)
    if event_id is None and export_id is not None and row_index is not None:
        event_id = f"{export_id}:{row_index}"
    return BatchExportRow(
        resolution=resolution,
        event_id=event_id,
        export_id=export_id,
        row_index=row_index,
    )


def validate_bundle(raw: object, *, max_rows: int) -> BatchExportBundle:
    """Validate the outer shape of a batch export bundle.

    Accepts ``{"rows": [...], "export_id": ...}`` or a bare array. Rows are
    not inspected here; see :func:`validate_batch_row`.
    """
    if isinstance(raw, list):
        rows, export_id = raw, None
    else:
        body = _require_object(raw, "$")
        if "rows" not in body:
            raise PayloadValidationError.missing_field("rows")
        rows = body["rows"]
        if not isinstance(rows, list):
            raise PayloadValidationError.type_mismatch("rows", "array", rows)
        export_id = _optional_text(body.get("export_id"), "export_id")
    if len(rows) > max_rows:
        raise PayloadValidationError.too_many_rows(len(rows), max_rows)
    return BatchExportBundle(rows=list(rows), export_id=export_id)


def validate(raw_body: object, source: SourceKind | str) -> TypedPayload:
    """Validate a single event body for the declared source kind.

    Raises
    ------
    PayloadValidationError
        If the body is not an object, a required discriminator field is
        missing, a known field has the wrong type, or a nested container is
        malformed.

    """
    kind = SourceKind.parse(str(source))
    match kind:
        case SourceKind.SUPERPIXEL:
            return _validate_superpixel(raw_body)
        case SourceKind.AUDIENCESYNC:
            return _validate_audiencesync(raw_body)
        case SourceKind.BATCH_EXPORT:
            return validate_batch_row(raw_body)
        case _:
            raise PayloadValidationError.unknown_source(str(source))
