"""Data models for the technology tracker.

Exposes the Status state machine, the Technology record and the derived
ProgressSummary. Status values are stored as their literal strings
("not-started", "in-progress", "completed") so snapshots stay readable.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Optional, Union

TechId = Union[int, str]


class InvalidInput(ValueError):
    """Raised when a caller submits a record the store cannot accept."""


class Status(Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    def next(self) -> "Status":
        """Forward transition; completed wraps back to not-started."""
        return _TRANSITIONS[self]

    @classmethod
    def parse(cls, raw: Union["Status", str]) -> "Status":
        if isinstance(raw, Status):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise InvalidInput(f"Unknown status: {raw!r}") from None


_TRANSITIONS = {
    Status.NOT_STARTED: Status.IN_PROGRESS,
    Status.IN_PROGRESS: Status.COMPLETED,
    Status.COMPLETED: Status.NOT_STARTED,
}

STATUSES = tuple(Status)


@dataclass
class Technology:
    """A single learning topic.

    Fields:
        id: Unique, immutable after creation (int for new records).
        title: Non-empty display title.
        description: Free text, may be empty.
        status: Current Status.
        notes: Free-text notes, empty by default.
        deadline: Optional target date.
    """
    id: TechId
    title: str
    description: str = ""
    status: Status = Status.NOT_STARTED
    notes: str = ""
    deadline: Optional[date] = None

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"Technology(id={self.id}, title={self.title}, status={self.status.value})"


@dataclass(frozen=True)
class ProgressSummary:
    total: int
    completed: int
    in_progress: int
    not_started: int
    percent: int

    def count(self, status: Status) -> int:
        return {
            Status.NOT_STARTED: self.not_started,
            Status.IN_PROGRESS: self.in_progress,
            Status.COMPLETED: self.completed,
        }[status]


def _round_percent(part: int, whole: int) -> int:
    """Half-up integer rounding of part/whole * 100 (12.5 -> 13)."""
    if whole == 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def compute_progress(technologies: Iterable[Technology]) -> ProgressSummary:
    """Derive the progress summary from a collection.

    This is the only place progress is computed; callers never cache it.
    """
    counts = {s: 0 for s in Status}
    for tech in technologies:
        counts[tech.status] += 1
    total = sum(counts.values())
    completed = counts[Status.COMPLETED]
    return ProgressSummary(
        total=total,
        completed=completed,
        in_progress=counts[Status.IN_PROGRESS],
        not_started=counts[Status.NOT_STARTED],
        percent=_round_percent(completed, total),
    )
