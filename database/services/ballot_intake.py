"""
Ballot Intake Service

Write path for ballot submissions. Each call walks one request through:
1. Validation (all violations collected, nothing stored on failure)
2. Optional voting-window check
3. Dedupe fingerprint derivation
4. Duplicate fast path (stored receipt returned, ledger untouched)
5. Atomic insert-then-count: the submission row and its ledger increments
   share one transaction, submission first

The service holds no mutable state of its own; uniqueness is enforced by
the submission store and counter arithmetic by the ledger's upserts.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Callable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import get_logger
from database.fingerprint import derive_dedupe_key, derive_receipt_id
from database.validator import has_unstorable_text, validate_submission
from database.vote_utils import derive_ballot_choices, derive_region
from exceptions import (
    BadInputError,
    ConfigurationError,
    ValidationFailedError,
    WindowClosedError,
)

logger = get_logger(__name__).bind(component="intake")

MESSAGE_COUNTED = "Submission received and counted."
MESSAGE_DUPLICATE = "Duplicate detected (already counted)."


class IntakeState(str, Enum):
    """Per-request intake states, in order"""
    RECEIVED = "received"
    VALIDATED = "validated"
    DEDUPE_CHECKED = "dedupe_checked"
    DUPLICATE = "duplicate"
    COUNTED = "counted"
    RESPONDED = "responded"


@dataclass
class IntakeResult:
    """Successful intake outcome (counted or duplicate)"""
    receipt_id: str
    counted: bool
    message: str
    path: List[IntakeState] = field(default_factory=list)

    @property
    def state(self) -> IntakeState:
        return self.path[-1] if self.path else IntakeState.RECEIVED

    def to_response(self) -> dict:
        return {
            "ok": True,
            "receipt_id": self.receipt_id,
            "counted": self.counted,
            "message": self.message,
        }


@dataclass(frozen=True)
class VotingWindow:
    """Fixed voting period; window_id is part of every dedupe fingerprint"""
    window_id: str
    open_date: date
    close_date: date
    tz_name: str

    @classmethod
    def from_config(cls, cfg) -> "VotingWindow":
        try:
            open_date = date.fromisoformat(cfg.WINDOW_OPEN)
            close_date = date.fromisoformat(cfg.WINDOW_CLOSE)
        except ValueError as e:
            raise ConfigurationError(f"Invalid window date: {e}", config_key="BALLOT_WINDOW_OPEN") from e
        try:
            ZoneInfo(cfg.WINDOW_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(
                f"Unknown window timezone: {cfg.WINDOW_TIMEZONE}", config_key="BALLOT_WINDOW_TIMEZONE"
            ) from e
        return cls(
            window_id=cfg.WINDOW_ID,
            open_date=open_date,
            close_date=close_date,
            tz_name=cfg.WINDOW_TIMEZONE,
        )

    def contains(self, moment: datetime) -> bool:
        """Open from 00:00 on open_date through the end of close_date, local time."""
        tz = ZoneInfo(self.tz_name)
        opens = datetime.combine(self.open_date, time.min, tzinfo=tz)
        closes = datetime.combine(self.close_date + timedelta(days=1), time.min, tzinfo=tz)
        return opens <= moment < closes

    def to_dict(self) -> dict:
        return {
            "open": self.open_date.isoformat(),
            "close": self.close_date.isoformat(),
            "timezone": self.tz_name,
        }


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_utc(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix"""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BallotIntakeService:
    """
    Service for accepting ballot submissions into the store and ledger.

    Repositories are injected so tests can pass in-memory fakes honouring
    the same contract.
    """

    def __init__(
        self,
        submissions,
        ledger,
        window: VotingWindow,
        enforce_window: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            submissions: SubmissionRepository (insert_if_absent, lookup, transaction)
            ledger: LedgerRepository (increment, increment_region)
            window: Voting window whose id seeds the dedupe fingerprint
            enforce_window: Reject submissions outside the window when True
            clock: Source of the acceptance timestamp (defaults to UTC now)
        """
        self.submissions = submissions
        self.ledger = ledger
        self.window = window
        self.enforce_window = enforce_window
        self.clock = clock or utc_now

    async def submit(self, payload: Any) -> IntakeResult:
        """
        Main entry point: validate -> fingerprint -> check-and-insert -> count.

        Raises:
            ValidationFailedError: not an object, or required fields missing (all listed)
            BadInputError: strings that can't be stored as UTF-8 (lone surrogates, NUL)
            WindowClosedError: window enforcement on and outside the window
            StorageUnavailableError: store/ledger unreachable
        """
        path = [IntakeState.RECEIVED]

        errors = validate_submission(payload)
        if errors:
            logger.info("submission rejected", violations=len(errors))
            raise ValidationFailedError(errors)
        if has_unstorable_text(payload):
            raise BadInputError("Submission contains text that is not valid UTF-8")
        self._advance(path, IntakeState.VALIDATED)

        now = self.clock()
        if self.enforce_window and not self.window.contains(now):
            raise WindowClosedError("Voting window is closed", window_id=self.window.window_id)

        dedupe_key = derive_dedupe_key(
            payload["voter_id"], payload["schema_version"], self.window.window_id
        )
        self._advance(path, IntakeState.DEDUPE_CHECKED)

        existing = await self.submissions.lookup(dedupe_key)
        if existing is not None:
            return self._duplicate(path, existing.receipt_id)

        receipt_id = derive_receipt_id(dedupe_key)
        region = derive_region(payload)
        choices = derive_ballot_choices(payload)

        # Submission first, then counters; one transaction so neither lands alone
        async with self.submissions.transaction() as conn:
            outcome = await self.submissions.insert_if_absent(
                receipt_id, dedupe_key, format_utc(now), region, dict(payload), conn=conn
            )
            if outcome.inserted:
                for counter_name in choices.counter_names():
                    await self.ledger.increment(counter_name, conn=conn)
                await self.ledger.increment_region(region, choices.approve, conn=conn)

        if not outcome.inserted:
            # Lost a race with a concurrent identical submission
            return self._duplicate(path, outcome.receipt_id)

        self._advance(path, IntakeState.COUNTED)
        logger.info(
            "submission counted",
            receipt_id=receipt_id,
            region=region,
            approve=choices.approve,
            prefer=choices.prefer,
        )
        self._advance(path, IntakeState.RESPONDED)
        return IntakeResult(receipt_id=receipt_id, counted=True, message=MESSAGE_COUNTED, path=path)

    def _duplicate(self, path: List[IntakeState], receipt_id: str) -> IntakeResult:
        self._advance(path, IntakeState.DUPLICATE)
        logger.info("duplicate submission", receipt_id=receipt_id)
        self._advance(path, IntakeState.RESPONDED)
        return IntakeResult(receipt_id=receipt_id, counted=False, message=MESSAGE_DUPLICATE, path=path)

    @staticmethod
    def _advance(path: List[IntakeState], state: IntakeState) -> None:
        logger.debug("intake transition", from_state=path[-1].value, to_state=state.value)
        path.append(state)
