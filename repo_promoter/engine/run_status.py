"""
Run status tracking for the webhook server.

Every promotion run gets its own record, keyed by ``(issue, target)``, so
concurrent runs for different events never interfere: the tracker observes
runs, it does not gate them. Each record is a small state machine whose
changes all go through ``TRANSITIONS``.

    idle        --start-->   in_progress
    in_progress --advance--> in_progress
    in_progress --succeed--> completed
    in_progress --fail-->    failed

A new event for the same ``(issue, target)`` starts a fresh record that
replaces the previous one.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from threading import Lock
from typing import Any

import structlog

from repo_promoter.exceptions import InvalidTransitionError

log = structlog.get_logger(__name__)

# Finished records beyond this many are dropped, oldest first.
MAX_RECORDED_RUNS = 100


class RunState(str, Enum):
    """State of one promotion run."""

    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TRANSITIONS: dict[tuple[RunState, str], RunState] = {
    (RunState.IDLE, "start"): RunState.IN_PROGRESS,
    (RunState.IN_PROGRESS, "advance"): RunState.IN_PROGRESS,
    (RunState.IN_PROGRESS, "succeed"): RunState.COMPLETED,
    (RunState.IN_PROGRESS, "fail"): RunState.FAILED,
}


@dataclass
class RunRecord:
    """Point-in-time view of one run."""

    issue_number: int
    target: str
    state: RunState = RunState.IDLE
    stage: str | None = None
    detail: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    history: list[str] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.state in (RunState.COMPLETED, RunState.FAILED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "issue": self.issue_number,
            "target": self.target,
            "stage": self.stage,
            "detail": self.detail,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "history": list(self.history),
        }


def _transition(record: RunRecord, action: str) -> None:
    key = (record.state, action)
    if key not in TRANSITIONS:
        raise InvalidTransitionError(f"Cannot {action} while {record.state.value}")
    new_state = TRANSITIONS[key]
    log.debug(
        "run_status_transition",
        transition=action,
        issue=record.issue_number,
        target=record.target,
        old=record.state.value,
        new=new_state.value,
    )
    record.state = new_state


class PromotionRun:
    """Handle a single saga run reports its progress through."""

    def __init__(self, tracker: "RunStatusTracker", record: RunRecord):
        self._tracker = tracker
        self._record = record

    @property
    def state(self) -> RunState:
        return self._record.state

    def advance(self, stage: str) -> None:
        with self._tracker.lock:
            _transition(self._record, "advance")
            self._record.stage = stage
            self._record.history.append(stage)

    def succeed(self, detail: str) -> None:
        with self._tracker.lock:
            _transition(self._record, "succeed")
            self._record.detail = detail
            self._record.finished_at = datetime.now(UTC)
            self._tracker.runs_completed += 1

    def fail(self, detail: str) -> None:
        with self._tracker.lock:
            _transition(self._record, "fail")
            self._record.detail = detail
            self._record.finished_at = datetime.now(UTC)
            self._tracker.runs_failed += 1


class RunStatusTracker:
    """Tracks every current and recent promotion run.

    Thread-safe so the webhook server can read it while runs advance.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self.runs_completed = 0
        self.runs_failed = 0
        self._runs: dict[tuple[int, str], RunRecord] = {}

    def start(self, issue_number: int, target: str) -> PromotionRun:
        """Record a new run and return its handle. Never blocks other runs."""
        record = RunRecord(issue_number=issue_number, target=target)
        with self.lock:
            _transition(record, "start")
            record.started_at = datetime.now(UTC)
            key = (issue_number, target)
            self._runs.pop(key, None)
            self._runs[key] = record
            self._evict()
        return PromotionRun(self, record)

    def _evict(self) -> None:
        excess = len(self._runs) - MAX_RECORDED_RUNS
        if excess <= 0:
            return
        finished = [key for key, record in self._runs.items() if record.finished]
        for key in finished[:excess]:
            del self._runs[key]

    def get(self, issue_number: int, target: str) -> dict[str, Any] | None:
        """Latest run for ``(issue_number, target)``, if any."""
        with self.lock:
            record = self._runs.get((issue_number, target))
            return record.to_dict() if record else None

    def snapshot(self) -> dict[str, Any]:
        with self.lock:
            runs = [record.to_dict() for record in self._runs.values()]
            return {
                "active": sum(1 for record in self._runs.values() if record.state == RunState.IN_PROGRESS),
                "runs_completed": self.runs_completed,
                "runs_failed": self.runs_failed,
                "runs": runs,
            }
