"""Source field lookups and value cleaning for the normalizer.

Every helper here tolerates missing or oddly typed input: lookups fall back
through a fixed chain of field names and cleaning returns an empty value
rather than raising.
"""

from __future__ import annotations

import re
import typing as typ
import unicodedata

from leadpipe.intake.payloads import AudienceSyncRow

if typ.TYPE_CHECKING:
    from leadpipe.intake.payloads import ResolutionFields, TypedPayload

_DELIMITERS = re.compile(r"[,;|\n]")
_WHITESPACE = re.compile(r"\s+")
_GARBAGE_TOKENS = frozenset(
    {"null", "none", "undefined", "n/a", "na", "unknown", "-"}
)
_GMAIL_DOMAINS = frozenset({"gmail.com", "googlemail.com"})
_MIN_PHONE_DIGITS = 7
_NANP_WITH_COUNTRY_CODE = 11

VERIFIED_STATUSES = frozenset(
    {"valid", "valid (esp)", "valid(esp)", "valid_esp", "verified"}
)
GUESSED_STATUSES = frozenset(
    {
        "catch-all",
        "catch_all",
        "catchall",
        "risky",
        "unknown",
        "invalid",
        "bounce",
        "disposable",
        "guessed",
    }
)


def clean_text(raw: object) -> str:
    """Strip control characters and collapse whitespace; ``""`` if unusable."""
    if not isinstance(raw, str):
        return ""
    visible = "".join(
        " " if unicodedata.category(ch) in {"Cc", "Cf", "Zl", "Zp"} else ch
        for ch in raw
    )
    text = _WHITESPACE.sub(" ", visible).strip()
    if text.lower() in _GARBAGE_TOKENS:
        return ""
    return text


def sanitize_name(raw: object) -> str:
    """Return a display-ready person name, never ``None``.

    >>> sanitize_name("  jANE\\t ")
    'Jane'
    >>> sanitize_name(None)
    ''
    """
    text = clean_text(raw)
    if not any(ch.isalpha() for ch in text):
        return ""
    return text.title()


def optional_text(raw: object) -> str | None:
    """Return cleaned text or ``None`` when nothing usable remains."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        raw = str(raw)
    return clean_text(raw) or None


def split_multi_value(raw: object) -> list[str]:
    """Split a delimited string or array into trimmed, non-empty items."""
    match raw:
        case None:
            return []
        case list() | tuple():
            items = [str(item) for item in raw if item is not None]
        case _:
            items = _DELIMITERS.split(str(raw))
    return [item.strip() for item in items if item and item.strip()]


def normalize_email(raw: str) -> str:
    """Lowercase and trim an email address for storage and comparison."""
    return raw.strip().lower()


def email_dedupe_key(email: str) -> str:
    """Return the workspace dedupe key for an email address.

    Gmail ignores dots in the local part, so ``j.doe@gmail.com`` and
    ``jdoe@gmail.com`` share a key.
    """
    normalized = normalize_email(email)
    local, _, domain = normalized.partition("@")
    if not local or not domain:
        return normalized
    if domain in _GMAIL_DOMAINS:
        local = local.replace(".", "")
    return f"{local}@{domain}"


def normalize_phone(raw: object) -> str:
    """Reduce a phone number to digits, dropping a leading NANP ``1``.

    Returns ``""`` for values with fewer than seven digits.
    """
    if raw is None or isinstance(raw, bool):
        return ""
    digits = "".join(ch for ch in str(raw) if ch.isdigit())
    if len(digits) == _NANP_WITH_COUNTRY_CODE and digits.startswith("1"):
        digits = digits[1:]
    return digits if len(digits) >= _MIN_PHONE_DIGITS else ""


def _status(raw: str | None) -> str:
    return (raw or "").strip().lower()


def _email_groups(fields: ResolutionFields) -> list[tuple[list[str], str]]:
    """Return ``(addresses, validation status)`` groups in priority order."""
    generic_status = _status(fields.EMAIL_VALIDATION_STATUS)
    return [
        (split_multi_value(fields.EMAIL), generic_status),
        (split_multi_value(fields.EMAILS), generic_status),
        (
            split_multi_value(fields.PERSONAL_EMAILS),
            _status(fields.PERSONAL_EMAIL_VALIDATION_STATUS),
        ),
        (
            split_multi_value(fields.BUSINESS_EMAILS),
            _status(fields.BUSINESS_EMAIL_VALIDATION_STATUS),
        ),
        (split_multi_value(fields.VERIFIED_EMAILS), "verified"),
    ]


def email_candidates(payload: TypedPayload) -> list[tuple[str, str]]:
    """Return ``(address, status)`` pairs deduplicated case-insensitively.

    Order of first appearance is kept; values without ``@`` are dropped.
    """
    seen: set[str] = set()
    candidates: list[tuple[str, str]] = []
    for addresses, status in _email_groups(payload.resolution):
        for raw in addresses:
            address = normalize_email(raw)
            if "@" not in address or address in seen:
                continue
            seen.add(address)
            candidates.append((address, status))
    return candidates


def is_verified_email(email: str, payload: TypedPayload) -> bool:
    """Return True only if ``payload`` explicitly vouches for ``email``.

    An explicit flag is ``VERIFIED_EMAIL: true`` alongside ``EMAIL``,
    membership of ``VERIFIED_EMAILS``, or a verified validation status on
    the field group that carries the address. Absence of a flag means
    unverified.
    """
    target = normalize_email(email)
    fields = payload.resolution
    if (
        fields.VERIFIED_EMAIL is True
        and fields.EMAIL is not None
        and normalize_email(fields.EMAIL) == target
    ):
        return True
    for addresses, status in _email_groups(fields):
        if status in VERIFIED_STATUSES and any(
            normalize_email(address) == target for address in addresses
        ):
            return True
    return False


def is_guessed_status(status: str) -> bool:
    """Return True for validation statuses that signal a low-confidence email."""
    return status in GUESSED_STATUSES


def phone_candidates(fields: ResolutionFields) -> list[tuple[str, bool]]:
    """Return ``(digits, direct)`` pairs; do-not-call numbers are not direct."""
    groups: list[tuple[object, bool]] = [
        (fields.PHONE, True),
        (fields.PHONES, True),
        (fields.PERSONAL_PHONE, True),
        (fields.MOBILE_PHONE, True),
        (fields.MOBILE_PHONE_DNC, False),
    ]
    candidates: list[tuple[str, bool]] = []
    for raw, direct in groups:
        values = raw if isinstance(raw, list) else split_multi_value(raw)
        for value in values:
            digits = normalize_phone(value)
            if digits:
                candidates.append((digits, direct))
    return candidates


def extract_event_type(payload: TypedPayload) -> str:
    """Return the upstream event name: ``EVENT``, ``EVENT_TYPE``, ``TYPE``."""
    fields = payload.resolution
    for candidate in (fields.EVENT, fields.EVENT_TYPE, fields.TYPE):
        text = clean_text(candidate)
        if text:
            return text
    return "unknown"


def extract_ip_address(payload: TypedPayload) -> str | None:
    """Return the visitor IP: ``IP_ADDRESS``, ``IP``, ``CLIENT_IP``.

    Forwarded-for style lists yield their first entry.
    """
    fields = payload.resolution
    for candidate in (fields.IP_ADDRESS, fields.IP, fields.CLIENT_IP):
        values = split_multi_value(candidate)
        if values:
            return values[0]
    return None


def extract_intent_signals(payload: TypedPayload, event_type: str) -> frozenset[str]:
    """Collect lowercase intent markers carried by the payload."""
    fields = payload.resolution
    signals = {
        topic.lower()
        for topic in (
            *split_multi_value(fields.INTENT_TOPICS),
            *split_multi_value(fields.TOPICS),
        )
    }
    if event_type != "unknown":
        signals.add(event_type.lower())
    if isinstance(payload, AudienceSyncRow) and payload.segment_name:
        signals.add(f"segment:{payload.segment_name.lower()}")
    return frozenset(signals)
