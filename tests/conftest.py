"""Shared fixtures for tracker tests."""

from typing import List

import pytest

from models import Status, Technology
from storage import MemoryStorage
from store import ProgressStore


class ScriptedRandom:
    """Random source returning scripted indexes and recording each range."""

    def __init__(self, picks: List[int] = None):
        self.picks = list(picks or [])
        self.ranges: List[int] = []

    def randrange(self, n: int) -> int:
        self.ranges.append(n)
        pick = self.picks.pop(0) if self.picks else 0
        assert 0 <= pick < n
        return pick


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture
def three_technologies() -> List[Technology]:
    return [
        Technology(id=1, title="Hooks", description="useState and useEffect", status=Status.COMPLETED),
        Technology(id=2, title="JSX", description="Markup in JavaScript", status=Status.COMPLETED),
        Technology(id=3, title="Hooks Advanced", description="Custom hooks", status=Status.IN_PROGRESS),
    ]


@pytest.fixture
def store(memory_storage, rng, three_technologies) -> ProgressStore:
    return ProgressStore(memory_storage, rng=rng, seed=three_technologies)
