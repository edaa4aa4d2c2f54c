"""Persistence helpers: key-value storage and snapshot (de)serialization.

The store only needs get/set on string values under a single key, so any
backend offering that shape works. JsonFileStorage keeps every key in one
JSON object on disk; MemoryStorage is used by tests and throwaway sessions.
"""
import json
import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Set

from models import Status, TechId, Technology

logger = logging.getLogger(__name__)

DATA_FILE = Path(__file__).parent.parent / 'data' / 'techtracker.json'
STORAGE_KEY = 'techTrackerProgress.v1'

# spellings written by older snapshots
LEGACY_STATUSES = {
    'todo': Status.NOT_STARTED,
    'not_started': Status.NOT_STARTED,
    'doing': Status.IN_PROGRESS,
    'in_progress': Status.IN_PROGRESS,
    'done': Status.COMPLETED,
}


class PersistenceError(Exception):
    """Reading from or writing to the durable store failed."""


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryStorage:
    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStorage:
    """Key-value storage backed by one JSON object file.

    Writes go through a temp file and os.replace so a key is either fully
    replaced or left as it was. Other keys in the file are preserved.
    """

    def __init__(self, path: Path = DATA_FILE):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError, RecursionError) as exc:
            raise PersistenceError(f'Cannot read {self.path}: {exc}') from exc
        if not isinstance(data, dict):
            raise PersistenceError(f'{self.path} does not hold a JSON object')
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise PersistenceError(f'Value under {key!r} is not a string')
        return value

    def set(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except PersistenceError:
            logger.warning('Overwriting unreadable storage file %s', self.path)
            data = {}
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix='.', suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=4, ensure_ascii=False)
                os.replace(tmp, self.path)
            except BaseException:
                os.unlink(tmp)
                raise
        except OSError as exc:
            raise PersistenceError(f'Cannot write {self.path}: {exc}') from exc


# -------------------- snapshot format --------------------
def technology_to_dict(tech: Technology) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        'id': tech.id,
        'title': tech.title,
        'description': tech.description,
        'status': tech.status.value,
        'notes': tech.notes,
    }
    if tech.deadline is not None:
        entry['deadline'] = tech.deadline.isoformat()
    return entry


def dump_technologies(technologies: List[Technology]) -> str:
    return json.dumps([technology_to_dict(t) for t in technologies], ensure_ascii=False)


def _parse_status(raw: Any) -> Status:
    if isinstance(raw, str):
        key = raw.strip().lower()
        if key in LEGACY_STATUSES:
            return LEGACY_STATUSES[key]
        for status in Status:
            if status.value == key:
                return status
    return Status.NOT_STARTED


def _parse_deadline(raw: Any) -> Optional[date]:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        # tolerate full timestamps by keeping the date part
        return date.fromisoformat(raw.split('T')[0])
    except ValueError:
        return None


def _text(raw: Any) -> str:
    return raw if isinstance(raw, str) else ''


def technology_from_dict(raw: Mapping[str, Any]) -> Optional[Technology]:
    """Build a record from a snapshot entry, or None if id/title are unusable."""
    tid = raw.get('id')
    # bool is an int subclass but never a valid id
    if isinstance(tid, bool) or not isinstance(tid, (int, str)) or tid == '':
        return None
    title = raw.get('title')
    if not isinstance(title, str) or not title.strip():
        return None
    return Technology(
        id=tid,
        title=title,
        description=_text(raw.get('description')),
        status=_parse_status(raw.get('status')),
        notes=_text(raw.get('notes')),
        deadline=_parse_deadline(raw.get('deadline')),
    )


def load_technologies(text: str) -> List[Technology]:
    """Deserialize and validate a snapshot.

    Raises PersistenceError when the payload as a whole is malformed. Single
    entries without a usable id or title, and duplicate ids, are dropped.
    """
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise PersistenceError(f'Snapshot is not valid JSON: {exc}') from exc
    if not isinstance(payload, list):
        raise PersistenceError('Snapshot must be a list of records')
    technologies: List[Technology] = []
    seen: Set[TechId] = set()
    for index, raw in enumerate(payload):
        if not isinstance(raw, dict):
            raise PersistenceError(f'Snapshot entry {index} is not an object')
        tech = technology_from_dict(raw)
        if tech is None:
            logger.warning('Dropping snapshot entry %d without usable id/title', index)
            continue
        if tech.id in seen:
            logger.warning('Dropping snapshot entry %d with duplicate id %r', index, tech.id)
            continue
        seen.add(tech.id)
        technologies.append(tech)
    return technologies
