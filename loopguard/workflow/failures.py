"""Consecutive-failure tracking and auto-pause.

FailureState is a small persisted record. record_failure() and
record_success() return new states; should_pause() is a pure predicate.
The tracker never un-pauses anything itself: clearing the pause flag is a
human action (loopguard resume).

Document shape (failure_state.json):
    {"consecutiveFailures": 0, "lastFailureSummary": "",
     "lastFailureRunRef": "", "lastFailureAt": ""}
"""

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path

from loopguard.lib.config import ConfigError
from loopguard.lib.validate import ValidationError, validate, validate_before_write

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailureState:
    consecutive_failures: int = 0
    last_failure_summary: str = ""
    last_failure_run_ref: str = ""
    last_failure_at: str = ""

    def to_dict(self) -> dict:
        return {
            "consecutiveFailures": self.consecutive_failures,
            "lastFailureSummary": self.last_failure_summary,
            "lastFailureRunRef": self.last_failure_run_ref,
            "lastFailureAt": self.last_failure_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FailureState":
        return cls(
            consecutive_failures=data["consecutiveFailures"],
            last_failure_summary=data["lastFailureSummary"],
            last_failure_run_ref=data["lastFailureRunRef"],
            last_failure_at=data["lastFailureAt"],
        )


def record_failure(state: FailureState, run_ref: str, summary: str, at: str | None = None) -> FailureState:
    """Count one more consecutive failure and overwrite the failure details.

    Args:
        state: Current failure state
        run_ref: Run identifier supplied by the trigger pipeline
        summary: Human-readable cause (violation or agent message)
        at: ISO timestamp; defaults to now (UTC)
    """
    new_state = FailureState(
        consecutive_failures=state.consecutive_failures + 1,
        last_failure_summary=summary,
        last_failure_run_ref=run_ref,
        last_failure_at=at or datetime.now(timezone.utc).isoformat(),
    )
    logger.info(
        f"[FAILURES] {state.consecutive_failures} -> {new_state.consecutive_failures} "
        f"(run {run_ref}): {summary}"
    )
    return new_state


def record_success(state: FailureState) -> FailureState:
    """Reset the consecutive-failure counter.

    The last failure details are kept for diagnosis.
    """
    if state.consecutive_failures:
        logger.info(f"[FAILURES] reset after success ({state.consecutive_failures} -> 0)")
    return replace(state, consecutive_failures=0)


def should_pause(state: FailureState, max_retries: int) -> bool:
    """True once consecutive failures reach the retry threshold."""
    return state.consecutive_failures >= max_retries


def load_failure_state(path: Path) -> FailureState:
    """Load failure_state.json; an absent file is a fresh state.

    Raises:
        ConfigError: If the file exists but is not valid
    """
    if not path.exists():
        return FailureState()

    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError("failure state", f"Invalid JSON in {path}: {e}") from None

    try:
        validate(data, "failure_state")
    except ValidationError as e:
        raise ConfigError("failure state", str(e)) from None

    return FailureState.from_dict(data)


def save_failure_state(path: Path, state: FailureState) -> None:
    """Validate and write failure_state.json."""
    data = state.to_dict()
    validate_before_write(data, "failure_state", path)
    path.write_text(json.dumps(data, indent=2) + "\n")
