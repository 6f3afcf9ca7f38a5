"""Deliverability scoring and the lead-creation policy.

The score is a normalized weighted sum of contact-quality components. Each
component only ever switches on as data is added, so adding a verified email
or a phone can never lower the score.
"""

from __future__ import annotations

import dataclasses as dc
import re
import typing as typ

if typ.TYPE_CHECKING:
    from leadpipe.normalize.identity import NormalizedIdentity

LEAD_CREATION_SCORE_THRESHOLD = 0.6

_EMAIL_SYNTAX = re.compile(r"^[^@\s]+@(?:[^@\s.]+\.)+[A-Za-z]{2,}$")


def is_valid_email_syntax(address: str) -> bool:
    """Return True for ``local@domain.tld`` shaped addresses.

    >>> is_valid_email_syntax("jane@example.com")
    True
    >>> is_valid_email_syntax("jane@localhost")
    False
    """
    return _EMAIL_SYNTAX.fullmatch(address) is not None


@dc.dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Relative weights of the deliverability components.

    ``verified_email`` must be at least as heavy as every other component
    so that explicit verification dominates the score.
    """

    verified_email: float = 0.5
    valid_email: float = 0.2
    phone: float = 0.15
    full_name: float = 0.15

    def __post_init__(self) -> None:
        """Reject negative, all-zero, or non-dominant weightings."""
        values = dc.astuple(self)
        if any(value < 0 for value in values):
            msg = "scoring weights must be non-negative"
            raise ValueError(msg)
        if self.total <= 0:
            msg = "at least one scoring weight must be positive"
            raise ValueError(msg)
        if self.verified_email < max(values):
            msg = "verified_email weight must be the largest component"
            raise ValueError(msg)

    @property
    def total(self) -> float:
        """Return the sum of all component weights."""
        return self.verified_email + self.valid_email + self.phone + self.full_name

    @classmethod
    def parse(cls, raw: str) -> ScoringWeights:
        """Parse ``name=value`` pairs separated by commas.

        Unnamed components keep their defaults.

        Raises
        ------
        ValueError
            If a pair is malformed, names an unknown component, or holds a
            non-numeric value.

        """
        known = {field.name for field in dc.fields(cls)}
        overrides: dict[str, float] = {}
        for chunk in raw.split(","):
            if not chunk.strip():
                continue
            name, sep, value = chunk.partition("=")
            name = name.strip()
            if not sep or name not in known:
                msg = f"invalid scoring weight entry {chunk.strip()!r}"
                raise ValueError(msg)
            try:
                overrides[name] = float(value)
            except ValueError as exc:
                msg = f"scoring weight {name!r} must be a number"
                raise ValueError(msg) from exc
        return cls(**overrides)


DEFAULT_WEIGHTS = ScoringWeights()


def compute_deliverability_score(
    identity: NormalizedIdentity, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> float:
    """Return the deliverability score for ``identity`` in ``[0, 1]``.

    The ``deliverability_score`` already stored on ``identity`` is ignored.
    """
    score = 0.0
    if identity.has_verified_email:
        score += weights.verified_email
    if any(is_valid_email_syntax(email.address) for email in identity.emails):
        score += weights.valid_email
    if identity.phones:
        score += weights.phone
    if identity.has_full_name:
        score += weights.full_name
    return round(min(score / weights.total, 1.0), 4)


def is_lead_worthy(
    identity: NormalizedIdentity,
    threshold: float = LEAD_CREATION_SCORE_THRESHOLD,
) -> bool:
    """Return True when ``identity`` may become a lead.

    The score must reach ``threshold`` and the identity must be reachable
    through a verified email or a phone.
    """
    if identity.deliverability_score < threshold:
        return False
    return identity.has_verified_email or bool(identity.phones)
