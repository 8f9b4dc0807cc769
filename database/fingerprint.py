"""
Fingerprint Derivation - Deterministic identifiers for ballot submissions

Single source of truth for dedupe keys and receipt IDs. Nothing else hashes
voter identifiers.

Identifier Patterns:
- Dedupe key: 64-char lowercase SHA256 hex of "{voter_id}|{schema_version}|{window_id}"
- Receipt ID: "r_" + first 8 hex chars of SHA256(dedupe_key)

Design Philosophy:
- IDs are deterministic: same inputs always produce same ID
- Dedupe keys are unique: hash collision probability is negligible
- Receipts are one-way: a receipt never reveals the dedupe key it came from,
  but a duplicate submission is always shown the same receipt
- window_id is configuration, never read from the payload
"""

import hashlib
import string
from typing import Any

RECEIPT_PREFIX = "r_"
RECEIPT_HASH_LENGTH = 8
DEDUPE_KEY_LENGTH = 64
FIELD_SEPARATOR = "|"


def _sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def _is_hex(value: str) -> bool:
    return all(c in string.hexdigits for c in value)


def derive_dedupe_key(voter_id: Any, schema_version: Any, window_id: str) -> str:
    """Derive the deduplication fingerprint for a submission

    Args:
        voter_id: Caller-supplied voter identifier, string or integer (stringified)
        schema_version: Payload schema version, string or integer (stringified)
        window_id: Configured voting-window identifier, e.g. "2026-01-03_to_2026-02-02"

    Returns:
        64-char lowercase hex SHA256 digest

    Examples:
        >>> derive_dedupe_key("v1", "1", "2026-01-03_to_2026-02-02")
        '...'  # 64 hex chars, identical on every call

    Notes:
        - A resubmission with a new schema_version is a new fingerprint
        - Changing window_id starts a fresh dedupe space
    """
    if not window_id:
        raise ValueError("window_id must be provided")

    key = FIELD_SEPARATOR.join([str(voter_id), str(schema_version), window_id])
    return _sha256_hex(key)


def derive_receipt_id(dedupe_key: str) -> str:
    """Derive the public receipt identifier from a dedupe key

    Args:
        dedupe_key: Fingerprint from derive_dedupe_key()

    Returns:
        Receipt ID: "r_" + first 8 hex chars of SHA256(dedupe_key)
    """
    if not dedupe_key:
        raise ValueError("dedupe_key must be provided")

    return f"{RECEIPT_PREFIX}{_sha256_hex(dedupe_key)[:RECEIPT_HASH_LENGTH]}"


def validate_dedupe_key(dedupe_key: str) -> bool:
    """Validate dedupe key format (64 lowercase hex chars)"""
    if not dedupe_key or len(dedupe_key) != DEDUPE_KEY_LENGTH:
        return False
    if dedupe_key != dedupe_key.lower():
        return False
    return _is_hex(dedupe_key)


def validate_receipt_id(receipt_id: str) -> bool:
    """Validate receipt ID format

    Valid format: r_{8-char-hex}
    Example: "r_3f9a0c12"
    """
    if not receipt_id or not receipt_id.startswith(RECEIPT_PREFIX):
        return False

    hash_part = receipt_id[len(RECEIPT_PREFIX):]
    if len(hash_part) != RECEIPT_HASH_LENGTH:
        return False

    return _is_hex(hash_part)
