"""Shared ballot choice derivation, tally rate computation, and ledger recounts."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional

from database.models import RegionTally

UNKNOWN_REGION = "Unknown"

# Canonical aggregate counter names
TOTAL_COUNTED = "total_submissions_counted"
APPROVE_YES = "approve_interim_yes"
PREFER_YES = "prefer_open_contest_yes"
BOTH_SELECTED = "both_selected"
NEITHER_SELECTED = "neither_selected"

COUNTER_NAMES = (TOTAL_COUNTED, APPROVE_YES, PREFER_YES, BOTH_SELECTED, NEITHER_SELECTED)

_ONE_DECIMAL = Decimal("0.1")


@dataclass(frozen=True)
class BallotChoices:
    """Booleans derived from ballot_track_a"""
    approve: bool
    prefer: bool

    @property
    def both(self) -> bool:
        return self.approve and self.prefer

    @property
    def neither(self) -> bool:
        return not self.approve and not self.prefer

    def counter_names(self) -> List[str]:
        """Aggregate counters one counted submission with these choices increments."""
        names = [TOTAL_COUNTED]
        if self.approve:
            names.append(APPROVE_YES)
        if self.prefer:
            names.append(PREFER_YES)
        if self.both:
            names.append(BOTH_SELECTED)
        if self.neither:
            names.append(NEITHER_SELECTED)
        return names


def derive_ballot_choices(payload: Mapping[str, Any]) -> BallotChoices:
    """Read the two track-A answers, defaulting to False when absent."""
    ballot = payload.get("ballot_track_a")
    if not isinstance(ballot, Mapping):
        ballot = {}
    return BallotChoices(
        approve=bool(ballot.get("approve_interim_masculine_regent")),
        prefer=bool(ballot.get("prefer_open_contest_in_approx_90_days")),
    )


def derive_region(payload: Mapping[str, Any]) -> str:
    """Region label for bucketing; "Unknown" when absent or blank."""
    context = payload.get("context")
    if not isinstance(context, Mapping):
        return UNKNOWN_REGION
    region = context.get("region")
    if region is None:
        return UNKNOWN_REGION
    region = str(region).strip()
    return region or UNKNOWN_REGION


def compute_rate_percent(part: int, total: int) -> Optional[float]:
    """Percentage of total, one decimal, ROUND_HALF_UP on the exact value.

    Returns None when total is zero.
    """
    if not total:
        return None
    exact = Decimal(part * 100) / Decimal(total)
    return float(exact.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


class LedgerRecount:
    """Ledger counters rebuilt from stored submissions.

    Fed one (region, payload) pair per stored submission, then compared
    with the live ledger to find drift.
    """

    def __init__(self):
        self.submissions = 0
        self.counters: Dict[str, int] = {name: 0 for name in COUNTER_NAMES}
        self.regions: Dict[str, RegionTally] = {}

    def add(self, region: str, payload: Mapping[str, Any]) -> None:
        choices = derive_ballot_choices(payload)
        self.submissions += 1
        for name in choices.counter_names():
            self.counters[name] += 1
        tally = self.regions.setdefault(region, RegionTally(region=region))
        tally.total += 1
        if choices.approve:
            tally.approve_yes += 1

    def counter_drift(self, current: Mapping[str, int]) -> Dict[str, int]:
        """Recounted minus stored, for counters that disagree"""
        return {
            name: self.counters[name] - current.get(name, 0)
            for name in COUNTER_NAMES
            if self.counters[name] != current.get(name, 0)
        }

    def regions_drifted(self, stored: Iterable[RegionTally]) -> List[str]:
        """Sorted names of regions whose stored pair differs (or is missing/extra)"""
        stored_pairs = {r.region: (r.total, r.approve_yes) for r in stored}
        expected = {r.region: (r.total, r.approve_yes) for r in self.regions.values()}
        return sorted(
            name for name in set(stored_pairs) | set(expected)
            if stored_pairs.get(name) != expected.get(name)
        )
