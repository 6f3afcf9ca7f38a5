"""Unit tests for the webhook payload validator."""

from __future__ import annotations

import pytest

from leadpipe.common.sources import SourceKind
from leadpipe.intake import (
    AudienceSyncRow,
    BatchExportRow,
    PayloadValidationError,
    SuperPixelEvent,
    canonical_key,
    flatten_payload,
    unwrap_envelope,
    unwrap_events,
    validate,
    validate_batch_row,
    validate_bundle,
)
from tests.helpers.payloads import audiencesync_row, superpixel_event


class TestCanonicalisation:
    """Tests for key canonicalisation and nested flattening."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("email", "EMAIL"),
            ("first-name", "FIRST_NAME"),
            ("Personal Emails", "PERSONAL_EMAILS"),
            ("company.domain", "COMPANY_DOMAIN"),
        ],
    )
    def test_canonical_key(self, raw: str, expected: str) -> None:
        """Upstream field names map to UPPER_SNAKE case."""
        assert canonical_key(raw) == expected

    def test_top_level_keys_win_over_nested(self) -> None:
        """Nested resolution fields never override top-level values."""
        flattened = flatten_payload(
            {
                "email": "top@example.com",
                "resolution": {"EMAIL": "nested@example.com", "FIRST_NAME": "Ann"},
            }
        )
        assert flattened["EMAIL"] == "top@example.com"
        assert flattened["FIRST_NAME"] == "Ann", "nested-only fields are kept"

    def test_blank_top_level_value_does_not_mask_nested(self) -> None:
        """An empty top-level value leaves the nested value in place."""
        flattened = flatten_payload(
            {"EMAIL": "  ", "event_data": {"email": "nested@example.com"}}
        )
        assert flattened["EMAIL"] == "nested@example.com"

    def test_string_event_is_an_event_name(self) -> None:
        """A string ``event`` is kept as the event name."""
        flattened = flatten_payload({"event": "form_submit", "EMAIL": "a@b.co"})
        assert flattened["EVENT"] == "form_submit"


class TestValidateSuperPixel:
    """Tests for SuperPixel event validation."""

    def test_returns_typed_event(self) -> None:
        """A flat object becomes a SuperPixelEvent carrying its event id."""
        payload = validate(superpixel_event(), "superpixel")
        assert isinstance(payload, SuperPixelEvent)
        assert payload.event_id == "evt-1"
        assert payload.resolution.EMAIL == "Jane@Example.com"
        assert payload.resolution.VERIFIED_EMAIL is True

    def test_lowercase_keys_are_accepted(self) -> None:
        """Upstream keys are case-insensitive."""
        payload = validate({"email": "a@b.co", "first_name": "Al"}, "superpixel")
        assert payload.resolution.EMAIL == "a@b.co"
        assert payload.resolution.FIRST_NAME == "Al"

    def test_nested_event_data_is_flattened(self) -> None:
        """``event.data`` objects contribute resolution fields."""
        payload = validate(
            {"event": {"data": {"email": "nested@example.com"}}}, "superpixel"
        )
        assert payload.resolution.EMAIL == "nested@example.com"

    def test_non_object_body_is_rejected(self) -> None:
        """Arrays and scalars are not single events."""
        with pytest.raises(PayloadValidationError) as excinfo:
            validate(["not", "an", "object"], "superpixel")
        assert excinfo.value.field == "$"

    def test_type_mismatch_names_the_field(self) -> None:
        """A known field with the wrong JSON type is reported by name."""
        with pytest.raises(PayloadValidationError) as excinfo:
            validate({"EMAIL": {"nested": True}}, "superpixel")
        assert excinfo.value.field == "EMAIL"

    def test_malformed_resolution_container(self) -> None:
        """A non-object ``resolution`` container is malformed."""
        with pytest.raises(PayloadValidationError) as excinfo:
            validate({"resolution": "oops"}, "superpixel")
        assert excinfo.value.field == "resolution"

    def test_unknown_fields_are_ignored(self) -> None:
        """Fields outside the resolution schema do not fail validation."""
        payload = validate({"EMAIL": "a@b.co", "SOMETHING_NEW": 1}, "superpixel")
        assert payload.resolution.EMAIL == "a@b.co"


class TestValidateAudienceSync:
    """Tests for AudienceSync row validation."""

    def test_unwraps_data_envelope(self) -> None:
        """The ``data`` envelope is removed and mapped fields decoded."""
        payload = validate(audiencesync_row(), "audiencesync")
        assert isinstance(payload, AudienceSyncRow)
        assert payload.event_id == "sync-1"
        assert payload.segment_name == "In-Market"
        assert payload.resolution.PERSONAL_EMAILS == "sam.personal@gmail.com"

    def test_fields_alias_is_accepted(self) -> None:
        """``fields`` is accepted in place of ``mapped_fields``."""
        payload = validate({"fields": {"email": "x@y.io"}}, "audiencesync")
        assert payload.resolution.EMAIL == "x@y.io"

    def test_missing_mapped_fields_is_rejected(self) -> None:
        """A row without mapped fields lacks its discriminator."""
        with pytest.raises(PayloadValidationError) as excinfo:
            validate({"data": {"segment_id": "s-1"}}, "audiencesync")
        assert excinfo.value.field == "mapped_fields"
        assert excinfo.value.reason == "required field is missing"

    def test_mapped_field_errors_are_prefixed(self) -> None:
        """Type errors inside mapped fields carry the container path."""
        with pytest.raises(PayloadValidationError) as excinfo:
            validate({"mapped_fields": {"first_name": ["a"]}}, "audiencesync")
        assert excinfo.value.field == "mapped_fields.FIRST_NAME"

    def test_unwrap_envelope_is_idempotent(self) -> None:
        """Unwrapping an already unwrapped row returns it unchanged."""
        once = unwrap_envelope(audiencesync_row())
        assert unwrap_envelope(once) is once


class TestBatchExport:
    """Tests for bundle and batch row validation."""

    def test_bundle_accepts_rows_object(self) -> None:
        """``{"rows": [...]}`` bundles keep their export id."""
        bundle = validate_bundle({"export_id": "exp-9", "rows": [{}, {}]}, max_rows=5)
        assert bundle.export_id == "exp-9"
        assert len(bundle.rows) == 2

    def test_bundle_accepts_bare_array(self) -> None:
        """A bare array is a bundle without export id."""
        bundle = validate_bundle([{}], max_rows=5)
        assert bundle.export_id is None
        assert bundle.rows == [{}]

    def test_bundle_over_limit_is_rejected(self) -> None:
        """Bundles larger than the configured bound fail as a whole."""
        with pytest.raises(PayloadValidationError) as excinfo:
            validate_bundle({"rows": [{}] * 3}, max_rows=2)
        assert excinfo.value.field == "rows"

    def test_bundle_rows_must_be_array(self) -> None:
        """A non-array ``rows`` value is a type mismatch."""
        with pytest.raises(PayloadValidationError) as excinfo:
            validate_bundle({"rows": "nope"}, max_rows=2)
        assert excinfo.value.reason == "expected array, got string"

    def test_row_without_event_id_gets_positional_id(self) -> None:
        """Rows borrow a stable id from the export id and their index."""
        row = validate_batch_row({"EMAIL": "a@b.co"}, export_id="exp-1", row_index=4)
        assert isinstance(row, BatchExportRow)
        assert row.event_id == "exp-1:4"

    def test_row_errors_carry_row_path(self) -> None:
        """Row-level type errors are reported under ``rows[i]``."""
        with pytest.raises(PayloadValidationError) as excinfo:
            validate_batch_row({"FIRST_NAME": {"x": 1}}, row_index=2)
        assert excinfo.value.field == "rows[2].FIRST_NAME"


class TestUnwrapEvents:
    """Tests for splitting SuperPixel deliveries."""

    @pytest.mark.parametrize(
        ("raw", "count"),
        [
            ({"EMAIL": "a@b.co"}, 1),
            ([{"EMAIL": "a@b.co"}, {"EMAIL": "c@d.co"}], 2),
            ({"result": [{}, {}, {}]}, 3),
        ],
    )
    def test_delivery_shapes(self, raw: object, count: int) -> None:
        """Single objects, arrays and result wrappers are all accepted."""
        assert len(unwrap_events(raw)) == count


def test_unknown_source_is_rejected() -> None:
    """An unknown source kind is a validation failure."""
    with pytest.raises(PayloadValidationError) as excinfo:
        validate({}, "carrier_pigeon")
    assert excinfo.value.field == "source"


def test_source_kind_accepts_enum() -> None:
    """The source may be passed as a SourceKind member."""
    payload = validate({"EMAIL": "a@b.co"}, SourceKind.BATCH_EXPORT)
    assert isinstance(payload, BatchExportRow)
