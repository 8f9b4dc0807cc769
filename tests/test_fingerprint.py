"""
Tests for dedupe key and receipt derivation

The dedupe key decides whether a submission counts; the receipt is what the
voter sees. Both must be deterministic, and the window must partition them.
"""

import hashlib

import pytest
from database.fingerprint import (
    derive_dedupe_key,
    derive_receipt_id,
    validate_dedupe_key,
    validate_receipt_id,
)

WINDOW = "2026-01-03_to_2026-02-02"


class TestDedupeKey:
    """Fingerprint of voter_id | schema_version | window_id"""

    def test_same_inputs_produce_same_key(self):
        assert derive_dedupe_key("v1", "1", WINDOW) == derive_dedupe_key("v1", "1", WINDOW)

    def test_key_is_sha256_of_joined_fields(self):
        expected = hashlib.sha256(f"v1|1|{WINDOW}".encode("utf-8")).hexdigest()
        assert derive_dedupe_key("v1", "1", WINDOW) == expected

    def test_schema_version_changes_key(self):
        """Resubmitting under a new schema version is a different submission"""
        assert derive_dedupe_key("v1", "1", WINDOW) != derive_dedupe_key("v1", "2", WINDOW)

    def test_window_changes_key(self):
        assert derive_dedupe_key("v1", "1", WINDOW) != derive_dedupe_key(
            "v1", "1", "2026-03-01_to_2026-03-31"
        )

    def test_non_string_fields_are_stringified(self):
        assert derive_dedupe_key("v1", 1, WINDOW) == derive_dedupe_key("v1", "1", WINDOW)

    def test_missing_window_rejected(self):
        with pytest.raises(ValueError):
            derive_dedupe_key("v1", "1", "")

    def test_key_is_valid_format(self):
        assert validate_dedupe_key(derive_dedupe_key("voter-42", "1", WINDOW))


class TestReceiptId:
    """Public receipt derived from the dedupe key"""

    def test_receipt_format(self):
        receipt = derive_receipt_id(derive_dedupe_key("v1", "1", WINDOW))
        assert receipt.startswith("r_")
        assert len(receipt) == 10
        assert validate_receipt_id(receipt)

    def test_receipt_is_prefix_of_key_hash(self):
        key = derive_dedupe_key("v1", "1", WINDOW)
        expected = "r_" + hashlib.sha256(key.encode("utf-8")).hexdigest()[:8]
        assert derive_receipt_id(key) == expected

    def test_receipt_does_not_expose_key(self):
        key = derive_dedupe_key("v1", "1", WINDOW)
        assert key[:8] not in derive_receipt_id(key)

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            derive_receipt_id("")


class TestFormatValidation:

    @pytest.mark.parametrize("receipt", [
        "",
        "r_123",
        "x_3f9a0c12",
        "r_3f9a0c1z",
        "r_3f9a0c12ff",
    ])
    def test_invalid_receipts(self, receipt):
        assert not validate_receipt_id(receipt)

    def test_uppercase_key_invalid(self):
        key = derive_dedupe_key("v1", "1", WINDOW)
        assert not validate_dedupe_key(key.upper())

    def test_short_key_invalid(self):
        assert not validate_dedupe_key("abc123")
