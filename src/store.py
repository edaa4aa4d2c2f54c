"""Progress store: owns the technology collection and every mutation on it.

Id-addressed operations are tolerant: an unknown id is a no-op, never an
error, because a caller may hold an id from an earlier render. Progress is
always derived from the live collection via models.compute_progress.
"""
import logging
import random
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from models import (
    InvalidInput,
    ProgressSummary,
    Status,
    TechId,
    Technology,
    compute_progress,
)
from storage import (
    STORAGE_KEY,
    KeyValueStorage,
    PersistenceError,
    dump_technologies,
    load_technologies,
)

logger = logging.getLogger(__name__)

StatusLike = Union[Status, str]
EDITABLE_FIELDS = ('title', 'description', 'status', 'notes', 'deadline')

SEED_TECHNOLOGIES: Sequence[Technology] = (
    Technology(id=1, title='React Components',
               description='Learning the basic building blocks',
               status=Status.COMPLETED),
    Technology(id=2, title='JSX Syntax',
               description='Mastering the JSX syntax',
               status=Status.IN_PROGRESS),
    Technology(id=3, title='State Management',
               description='Working with component state',
               status=Status.NOT_STARTED),
)


def _check_text(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidInput(f'{name} must be text, got {type(value).__name__}')
    return value


def _check_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput('Title required.')
    return value.strip()


def _check_deadline(value: Any) -> Optional[date]:
    # datetime is a date subclass but does not compare with plain dates
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    raise InvalidInput(f'deadline must be a date or None, got {type(value).__name__}')


@dataclass(frozen=True)
class Statistics:
    """Read model for the statistics view."""
    progress: ProgressSummary
    upcoming: List[Technology]
    overdue: List[Technology]


class ProgressStore:
    def __init__(self, storage: KeyValueStorage, rng: Optional[Any] = None,
                 seed: Optional[Iterable[Technology]] = None):
        self._storage = storage
        # anything with randrange(n) works; tests pass a scripted source
        self._rng = rng if rng is not None else random.Random()
        self._seed: List[Technology] = list(seed if seed is not None else SEED_TECHNOLOGIES)
        self._technologies: List[Technology] = self._load()

    # -------------------- loading --------------------
    def _load(self) -> List[Technology]:
        try:
            raw = self._storage.get(STORAGE_KEY)
            if raw is None:
                logger.info('No saved progress under %s; using seed collection', STORAGE_KEY)
                return self._seed_copy()
            return load_technologies(raw)
        except PersistenceError as exc:
            logger.warning('Saved progress unusable (%s); using seed collection', exc)
            return self._seed_copy()

    def _seed_copy(self) -> List[Technology]:
        return [replace(t) for t in self._seed]

    def _persist(self) -> None:
        """Write-through; failures are logged and the session carries on in memory."""
        try:
            self._storage.set(STORAGE_KEY, dump_technologies(self._technologies))
        except (PersistenceError, OSError, TypeError, ValueError) as exc:
            logger.warning('Could not save progress: %s', exc)

    # -------------------- queries --------------------
    @property
    def technologies(self) -> List[Technology]:
        return list(self._technologies)

    def get(self, tech_id: TechId) -> Optional[Technology]:
        for tech in self._technologies:
            if tech.id == tech_id:
                return tech
        return None

    def progress(self) -> ProgressSummary:
        return compute_progress(self._technologies)

    def filter(self, status: StatusLike = 'all', search: Optional[str] = None) -> List[Technology]:
        """Technologies matching a status (or 'all') AND a search term.

        The search is a case-insensitive substring match on title or
        description; an empty or missing term matches everything.
        """
        if status is None or (isinstance(status, str) and status.strip().lower() == 'all'):
            wanted = None
        else:
            wanted = Status.parse(status)
        needle = (search or '').strip().lower()
        result: List[Technology] = []
        for tech in self._technologies:
            if wanted is not None and tech.status is not wanted:
                continue
            if needle and needle not in tech.title.lower() and needle not in tech.description.lower():
                continue
            result.append(tech)
        return result

    def statistics(self, today: Optional[date] = None) -> Statistics:
        today = today or date.today()
        dated = sorted((t for t in self._technologies if t.deadline is not None),
                       key=lambda t: t.deadline)
        overdue = [t for t in dated if t.deadline < today and t.status is not Status.COMPLETED]
        return Statistics(progress=self.progress(), upcoming=dated, overdue=overdue)

    # -------------------- id management --------------------
    def _allocate_id(self) -> int:
        taken = {t.id for t in self._technologies}
        nid = max((t for t in taken if isinstance(t, int)), default=0) + 1
        while nid in taken:
            nid += 1
        return nid

    # -------------------- status operations --------------------
    def update_status(self, tech_id: TechId, new_status: StatusLike) -> None:
        """Set a status directly; unknown ids are ignored."""
        status = Status.parse(new_status)
        tech = self.get(tech_id)
        if tech is None:
            logger.debug('update_status: id %r not found', tech_id)
            return
        if tech.status is status:
            return
        tech.status = status
        self._persist()

    def cycle_status(self, tech_id: TechId) -> None:
        """Advance one step along the status cycle."""
        tech = self.get(tech_id)
        if tech is None:
            logger.debug('cycle_status: id %r not found', tech_id)
            return
        self.update_status(tech_id, tech.status.next())

    def bulk_update_status(self, tech_ids: Iterable[TechId], new_status: StatusLike) -> None:
        """Set one status on every listed id that exists."""
        status = Status.parse(new_status)
        wanted = set(tech_ids)
        changed = False
        for tech in self._technologies:
            if tech.id in wanted and tech.status is not status:
                tech.status = status
                changed = True
        if changed:
            self._persist()

    def mark_all_completed(self) -> None:
        """Mark every technology completed."""
        self.bulk_update_status([t.id for t in self._technologies], Status.COMPLETED)

    def reset_all_statuses(self) -> None:
        """Put every technology back to not-started."""
        self.bulk_update_status([t.id for t in self._technologies], Status.NOT_STARTED)

    def random_select_next(self) -> Optional[Technology]:
        """Advance one uniformly chosen not-started technology to in-progress.

        Returns the chosen record, or None when nothing is left to start.
        """
        candidates = [t for t in self._technologies if t.status is Status.NOT_STARTED]
        if not candidates:
            return None
        chosen = candidates[self._rng.randrange(len(candidates))]
        self.cycle_status(chosen.id)
        return chosen

    # -------------------- field operations --------------------
    def update_notes(self, tech_id: TechId, text: str) -> None:
        """Replace the notes of a technology."""
        text = _check_text('notes', text)
        tech = self.get(tech_id)
        if tech is None:
            return
        tech.notes = text
        self._persist()

    def update_deadline(self, tech_id: TechId, deadline: Optional[date]) -> None:
        """Set or clear (None) the deadline of a technology."""
        deadline = _check_deadline(deadline)
        tech = self.get(tech_id)
        if tech is None:
            return
        tech.deadline = deadline
        self._persist()

    def add_technology(self, title: str, description: str = '', status: StatusLike = Status.NOT_STARTED,
                       notes: str = '', deadline: Optional[date] = None) -> Technology:
        """Append a new technology with a fresh id and return it."""
        tech = Technology(
            id=self._allocate_id(),
            title=_check_title(title),
            description=_check_text('description', description),
            status=Status.parse(status),
            notes=_check_text('notes', notes),
            deadline=_check_deadline(deadline),
        )
        self._technologies.append(tech)
        logger.debug('Added technology %r (id %s)', tech.title, tech.id)
        self._persist()
        return tech

    def edit_technology(self, tech_id: TechId, **patch: Any) -> None:
        """Merge the given fields into a technology; other fields are kept."""
        unknown = set(patch) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidInput(f'Cannot edit field(s): {", ".join(sorted(unknown))}')
        checked: Dict[str, Any] = {}
        for name, value in patch.items():
            if name == 'title':
                checked[name] = _check_title(value)
            elif name == 'status':
                checked[name] = Status.parse(value)
            elif name == 'deadline':
                checked[name] = _check_deadline(value)
            else:
                checked[name] = _check_text(name, value)
        tech = self.get(tech_id)
        if tech is None:
            return
        for name, value in checked.items():
            setattr(tech, name, value)
        self._persist()

    # -------------------- snapshot import/export --------------------
    def export_snapshot(self) -> str:
        return dump_technologies(self._technologies)

    def import_snapshot(self, text: str) -> int:
        """Replace the collection with a validated snapshot; returns its size."""
        try:
            technologies = load_technologies(text)
        except PersistenceError as exc:
            raise InvalidInput(str(exc)) from exc
        self._technologies = technologies
        self._persist()
        return len(technologies)

    def __str__(self) -> str:
        p = self.progress()
        return (f'Not started: {p.not_started}, '
                f'In progress: {p.in_progress}, '
                f'Completed: {p.completed} ({p.percent}%)')
