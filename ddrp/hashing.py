"""
Hashing — Digests and Fingerprints

Two families, never interchangeable:

  - sha256_16:          SHA-256, truncated to 16 hex chars (64 bits).
                        Used for ledger chaining and output hashes.
  - change_fingerprint: Legacy 32-bit rolling hash over UTF-16 code
                        units. Change detection only. Kept so that
                        detection input hashes match records produced
                        by earlier releases.

All digests are computed over canonical_json, which preserves the
field order the caller built. Callers build dicts in a fixed order;
nothing here sorts or reorders keys.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Union

HASH_LENGTH = 16


def sha256_16(data: Union[str, bytes]) -> str:
    """
    SHA-256 of data, first 16 hex characters.

    str is encoded as UTF-8 with surrogatepass, the same policy as
    change_fingerprint, so text holding lone surrogates still hashes.
    """
    if isinstance(data, str):
        data = data.encode("utf-8", "surrogatepass")
    return hashlib.sha256(data).hexdigest()[:HASH_LENGTH]


def change_fingerprint(text: str) -> str:
    """
    Legacy non-cryptographic fingerprint of a string.

    h = h * 31 + unit over the UTF-16 code units of text, wrapped to
    a signed 32-bit integer. The absolute value is rendered as
    lowercase hex, zero-padded to 8 digits.

    NOT a security hash. Do not use for chain integrity.
    """
    raw = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(raw), 2):
        unit = raw[i] | (raw[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return format(abs(h), "08x")


def canonical_json(obj: Any) -> str:
    """Compact JSON with caller-defined key order."""
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def digest_of(obj: Any) -> str:
    """sha256_16 of the canonical JSON encoding of obj."""
    return sha256_16(canonical_json(obj))


def detection_hash(detection: Any) -> str:
    """Output hash of a detection result, as recorded in the ledger."""
    return digest_of(detection.to_dict())


def obligation_hash(obligations: Any) -> str:
    """Output hash of an obligation result, as recorded in the ledger."""
    return digest_of(obligations.to_dict())
