"""
Database Models for the ballot service

Pydantic dataclasses with runtime validation for stored entities.
"""


from typing import Any, Dict, Optional
from pydantic.dataclasses import dataclass

from database.fingerprint import validate_dedupe_key, validate_receipt_id


@dataclass
class Submission:
    """One accepted ballot - created once per dedupe key, never mutated"""

    receipt_id: str  # r_3f9a0c12 (derived from dedupe_key)
    dedupe_key: str  # Primary key: sha256 hex fingerprint
    created_utc: str  # ISO-8601 acceptance time, server clock
    region: str  # context.region or "Unknown"
    payload: Dict[str, Any]  # Verbatim submission for audit/replay

    def __post_init__(self):
        """Validate identifier formats after initialization"""
        if not validate_dedupe_key(self.dedupe_key):
            raise ValueError(f"Invalid dedupe_key format: {self.dedupe_key!r}")
        if not validate_receipt_id(self.receipt_id):
            raise ValueError(f"Invalid receipt_id format: {self.receipt_id!r}")


@dataclass
class RegionTally:
    """Per-region counter pair"""

    region: str
    total: int = 0
    approve_yes: int = 0


@dataclass
class InsertOutcome:
    """Result of a conflict-aware submission insert

    inserted=False means the dedupe key already existed; receipt_id is then
    the previously issued receipt.
    """

    inserted: bool
    receipt_id: Optional[str] = None
