"""
Results service layer

Builds the public tally snapshot from the ledger. Read-only: it never
recomputes from submissions, so it may trail an in-flight write.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from database.services.ballot_intake import VotingWindow, format_utc, utc_now
from database.vote_utils import (
    APPROVE_YES,
    BOTH_SELECTED,
    NEITHER_SELECTED,
    PREFER_YES,
    TOTAL_COUNTED,
    compute_rate_percent,
)


async def build_results_snapshot(
    ledger, window: VotingWindow, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Render current counters as the results payload

    Args:
        ledger: Anything with async read_all() / read_all_regions()
        window: Voting window published alongside the counts
        now: Snapshot time (defaults to UTC now)
    """
    counters = await ledger.read_all()
    regions = await ledger.read_all_regions()

    total = counters.get(TOTAL_COUNTED, 0)
    approve = counters.get(APPROVE_YES, 0)
    prefer = counters.get(PREFER_YES, 0)

    regional_balance = [
        {
            "region": r.region,
            "submissions_counted": r.total,
            "approve_rate_percent": compute_rate_percent(r.approve_yes, r.total),
        }
        for r in regions
    ]

    return {
        "last_updated_utc": format_utc(now or utc_now()),
        "window": window.to_dict(),
        "ballot": {
            "total_submissions_counted": total,
            "approve_interim_yes": approve,
            "prefer_open_contest_yes": prefer,
            "both_selected": counters.get(BOTH_SELECTED, 0),
            "neither_selected": counters.get(NEITHER_SELECTED, 0),
            "approval_rate_percent": compute_rate_percent(approve, total),
            "prefer_open_rate_percent": compute_rate_percent(prefer, total),
        },
        "regional_balance": regional_balance,
    }
