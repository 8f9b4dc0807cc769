"""
Submission validation layer to keep malformed ballots out of the store.

Pure functions, no I/O. Every violation is collected in one pass so the
caller can show the voter all problems at once.
"""

from collections.abc import Mapping
from numbers import Number
from typing import Any, List

REQUIRED_TOP_LEVEL_FIELDS = ("schema_version", "created_utc", "voter_id")
REQUIRED_CONTEXT_FIELDS = ("region", "country_or_territory")

# Hashed into the dedupe key; floats and booleans have no stable text form
IDENTIFIER_FIELDS = ("schema_version", "voter_id")


def _is_blank(value: Any) -> bool:
    """Missing, None, False, zero, empty or whitespace-only string"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (bool, Number)):
        return not value
    return False


def _is_identifier(value: Any) -> bool:
    return isinstance(value, str) or (isinstance(value, int) and not isinstance(value, bool))


def has_unstorable_text(value: Any) -> bool:
    """True if any string in value (keys included) can't be stored as UTF-8 text

    Catches lone surrogates from JSON escapes like "\\ud800" and NUL
    characters, which PostgreSQL rejects in TEXT and JSONB.
    """
    if isinstance(value, str):
        if "\x00" in value:
            return True
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            return True
        return False
    if isinstance(value, Mapping):
        return any(has_unstorable_text(k) or has_unstorable_text(v) for k, v in value.items())
    if isinstance(value, list):
        return any(has_unstorable_text(v) for v in value)
    return False


def validate_submission(payload: Any) -> List[str]:
    """Check a submission payload against the required-field rules

    Args:
        payload: Parsed request body

    Returns:
        List of human-readable violations; empty means well-formed

    Examples:
        >>> validate_submission({"voter_id": "v1"})
        ['Missing schema_version', 'Missing created_utc', 'Missing context.region', ...]
    """
    errors: List[str] = []

    if not isinstance(payload, Mapping):
        errors.append("Submission must be a JSON object")
        payload = {}

    for field in REQUIRED_TOP_LEVEL_FIELDS:
        value = payload.get(field)
        if _is_blank(value):
            errors.append(f"Missing {field}")
        elif field in IDENTIFIER_FIELDS and not _is_identifier(value):
            errors.append(f"{field} must be a string")

    context = payload.get("context")
    if context is not None and not isinstance(context, Mapping):
        errors.append("context must be an object")
    if not isinstance(context, Mapping):
        context = {}

    for field in REQUIRED_CONTEXT_FIELDS:
        if _is_blank(context.get(field)):
            errors.append(f"Missing context.{field}")

    ballot = payload.get("ballot_track_a")
    if ballot is not None and not isinstance(ballot, Mapping):
        errors.append("ballot_track_a must be an object")

    return errors
