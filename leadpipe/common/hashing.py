"""Hashing capability shared by dedupe keys and webhook verification.

Pipeline code depends on the :class:`Hasher` protocol rather than on a
concrete digest API, so a runtime without :mod:`hashlib` can supply its own
implementation.

Examples
--------
>>> hasher = HashlibHasher()
>>> hasher.sha256_hex(b"abc")[:8]
'ba7816bf'

"""

from __future__ import annotations

import hashlib
import hmac
import typing as typ


class Hasher(typ.Protocol):
    """Digest primitives required by the ingestion pipeline."""

    def sha256_hex(self, data: bytes) -> str:
        """Return the lowercase hex SHA-256 digest of ``data``."""
        ...

    def hmac_sha256_hex(self, key: bytes, message: bytes) -> str:
        """Return the lowercase hex HMAC-SHA256 of ``message`` under ``key``."""
        ...

    def constant_time_equals(self, left: str, right: str) -> bool:
        """Compare two strings without leaking timing information."""
        ...


class HashlibHasher:
    """:class:`Hasher` backed by the CPython :mod:`hashlib` and :mod:`hmac`."""

    def sha256_hex(self, data: bytes) -> str:
        """Return the lowercase hex SHA-256 digest of ``data``."""
        return hashlib.sha256(data).hexdigest()

    def hmac_sha256_hex(self, key: bytes, message: bytes) -> str:
        """Return the lowercase hex HMAC-SHA256 of ``message`` under ``key``."""
        return hmac.new(key, message, hashlib.sha256).hexdigest()

    def constant_time_equals(self, left: str, right: str) -> bool:
        """Compare two strings without leaking timing information."""
        return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


DEFAULT_HASHER: Hasher = HashlibHasher()

__all__ = ["DEFAULT_HASHER", "HashlibHasher", "Hasher"]
