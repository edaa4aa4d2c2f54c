"""
Tests for the progress store: status operations, filtering, bulk actions,
random selection and persistence.
"""

import json
import logging
from dataclasses import replace
from datetime import date, datetime

import pytest

from models import InvalidInput, Status, Technology
from storage import STORAGE_KEY, MemoryStorage, PersistenceError, load_technologies
from store import SEED_TECHNOLOGIES, ProgressStore


def _statuses(store):
    return {t.id: t.status for t in store.technologies}


def _snapshot(store):
    """Value copies, so later in-place edits cannot leak into the comparison."""
    return [replace(t) for t in store.technologies]


class FailingStorage:
    """Storage whose reads and/or writes always fail."""

    def __init__(self, fail_get=True, fail_set=True):
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.writes = 0

    def get(self, key):
        if self.fail_get:
            raise PersistenceError("disk on fire")
        return None

    def set(self, key, value):
        self.writes += 1
        if self.fail_set:
            raise PersistenceError("quota exceeded")


class TestInitialization:
    """Collection comes from the saved snapshot or falls back to the seed."""

    def test_empty_storage_uses_seed(self, memory_storage):
        store = ProgressStore(memory_storage)
        assert [t.title for t in store.technologies] == [t.title for t in SEED_TECHNOLOGIES]

    def test_seed_is_not_shared_between_stores(self):
        first = ProgressStore(MemoryStorage())
        first.mark_all_completed()
        second = ProgressStore(MemoryStorage())
        assert second.progress().percent != 100
        assert SEED_TECHNOLOGIES[2].status is Status.NOT_STARTED

    def test_saved_snapshot_is_loaded(self):
        storage = MemoryStorage({STORAGE_KEY: json.dumps([{"id": 7, "title": "Vue", "status": "completed"}])})
        store = ProgressStore(storage)
        assert store.technologies == [Technology(id=7, title="Vue", status=Status.COMPLETED)]

    def test_corrupt_snapshot_falls_back_to_seed(self, caplog):
        storage = MemoryStorage({STORAGE_KEY: "{{{"})
        with caplog.at_level(logging.WARNING):
            store = ProgressStore(storage)
        assert len(store.technologies) == len(SEED_TECHNOLOGIES)
        assert "using seed collection" in caplog.text

    def test_deeply_nested_snapshot_falls_back_to_seed(self, caplog):
        storage = MemoryStorage({STORAGE_KEY: "[" * 200000 + "]" * 200000})
        with caplog.at_level(logging.WARNING):
            store = ProgressStore(storage)
        assert len(store.technologies) == len(SEED_TECHNOLOGIES)
        assert "using seed collection" in caplog.text

    def test_unreadable_storage_falls_back_to_seed(self):
        store = ProgressStore(FailingStorage())
        assert len(store.technologies) == len(SEED_TECHNOLOGIES)

    def test_initialization_does_not_write(self, memory_storage):
        ProgressStore(memory_storage)
        assert memory_storage.get(STORAGE_KEY) is None


class TestStatusOperations:
    def test_update_status_sets_directly(self, store):
        store.update_status(3, Status.NOT_STARTED)
        assert store.get(3).status is Status.NOT_STARTED

    def test_update_status_accepts_string_value(self, store):
        store.update_status(2, "in-progress")
        assert store.get(2).status is Status.IN_PROGRESS

    def test_update_status_unknown_id_is_noop(self, store, memory_storage):
        before = _statuses(store)
        store.update_status(99, Status.COMPLETED)
        assert _statuses(store) == before
        assert memory_storage.get(STORAGE_KEY) is None

    def test_cycle_status_advances(self, store):
        store.cycle_status(3)
        assert store.get(3).status is Status.COMPLETED
        store.cycle_status(3)
        assert store.get(3).status is Status.NOT_STARTED

    def test_cycle_three_times_restores_every_record(self, store):
        before = _statuses(store)
        for tech_id in before:
            for _ in range(3):
                store.cycle_status(tech_id)
        assert _statuses(store) == before

    def test_cycle_unknown_id_is_noop(self, store):
        before = _statuses(store)
        store.cycle_status("missing")
        assert _statuses(store) == before

    def test_bulk_update_changes_only_existing_ids(self, memory_storage, rng):
        store = ProgressStore(memory_storage, rng=rng, seed=[
            Technology(id=1, title="A"),
            Technology(id=2, title="B"),
            Technology(id=4, title="D", status=Status.IN_PROGRESS),
        ])
        store.bulk_update_status([1, 2, 3], Status.COMPLETED)
        assert _statuses(store) == {1: Status.COMPLETED, 2: Status.COMPLETED, 4: Status.IN_PROGRESS}

    def test_bulk_update_order_does_not_matter(self, three_technologies):
        a = ProgressStore(MemoryStorage(), seed=three_technologies)
        b = ProgressStore(MemoryStorage(), seed=three_technologies)
        a.bulk_update_status([3, 1], "not-started")
        b.bulk_update_status([1, 3], "not-started")
        assert a.technologies == b.technologies

    def test_mark_all_completed_gives_full_progress(self, store):
        store.mark_all_completed()
        assert store.progress().percent == 100
        assert all(t.status is Status.COMPLETED for t in store.technologies)

    def test_reset_all_gives_zero_progress(self, store):
        store.reset_all_statuses()
        assert store.progress().percent == 0
        assert all(t.status is Status.NOT_STARTED for t in store.technologies)


class TestRandomSelectNext:
    """Random selection only ever starts a not-started technology."""

    def test_no_candidates_is_noop(self, store, memory_storage, rng):
        # seed fixture has no not-started records
        before = _snapshot(store)
        assert store.random_select_next() is None
        assert store.technologies == before
        assert rng.ranges == []
        assert memory_storage.get(STORAGE_KEY) is None

    def test_single_candidate_advances_only_that_record(self, store):
        store.update_status(2, Status.NOT_STARTED)
        chosen = store.random_select_next()
        assert chosen.id == 2
        assert _statuses(store) == {1: Status.COMPLETED, 2: Status.IN_PROGRESS, 3: Status.IN_PROGRESS}

    def test_picks_index_within_current_candidates(self, store, rng):
        store.reset_all_statuses()
        rng.picks = [2, 0]
        assert store.random_select_next().id == 3
        assert store.random_select_next().id == 1
        # candidate set is recomputed on every call
        assert rng.ranges == [3, 2]
        assert store.get(2).status is Status.NOT_STARTED

    def test_default_rng_always_picks_a_candidate(self, three_technologies):
        store = ProgressStore(MemoryStorage(), seed=three_technologies)
        store.reset_all_statuses()
        for _ in range(3):
            assert store.random_select_next() is not None
        assert store.random_select_next() is None
        assert all(t.status is Status.IN_PROGRESS for t in store.technologies)


class TestFieldOperations:
    def test_update_notes_and_deadline(self, store):
        store.update_notes(1, "revisit useMemo")
        store.update_deadline(1, date(2026, 11, 30))
        tech = store.get(1)
        assert tech.notes == "revisit useMemo"
        assert tech.deadline == date(2026, 11, 30)
        store.update_deadline(1, None)
        assert store.get(1).deadline is None

    def test_field_updates_on_unknown_id_are_noops(self, store, memory_storage):
        before = _snapshot(store)
        store.update_notes(42, "x")
        store.update_deadline(42, date(2026, 1, 1))
        assert store.technologies == before
        assert memory_storage.get(STORAGE_KEY) is None

    def test_add_appends_with_fresh_id(self, store):
        tech = store.add_technology("Redux", "Global state")
        assert tech.id == 4
        assert tech.status is Status.NOT_STARTED
        assert store.technologies[-1] is tech

    def test_add_never_reuses_ids(self, memory_storage):
        store = ProgressStore(memory_storage, seed=[Technology(id="x", title="X"), Technology(id=5, title="Y")])
        ids = {store.add_technology(f"T{i}").id for i in range(3)}
        assert ids == {6, 7, 8}

    def test_add_accepts_initial_status(self, store):
        tech = store.add_technology("Next.js", status="completed")
        assert tech.status is Status.COMPLETED

    @pytest.mark.parametrize("title", ["", "   "])
    def test_add_empty_title_raises(self, store, title):
        with pytest.raises(InvalidInput):
            store.add_technology(title)
        assert len(store.technologies) == 3

    def test_edit_merges_only_given_fields(self, store):
        store.edit_technology(2, title="JSX Deep Dive", notes="fragments")
        tech = store.get(2)
        assert tech.title == "JSX Deep Dive"
        assert tech.notes == "fragments"
        assert tech.description == "Markup in JavaScript"
        assert tech.status is Status.COMPLETED

    def test_edit_unknown_id_is_noop(self, store, memory_storage):
        before = _snapshot(store)
        store.edit_technology(99, title="Nope")
        assert store.technologies == before
        assert memory_storage.get(STORAGE_KEY) is None

    def test_edit_rejects_empty_title_and_unknown_fields(self, store):
        with pytest.raises(InvalidInput):
            store.edit_technology(1, title="")
        with pytest.raises(InvalidInput):
            store.edit_technology(1, id=10)
        assert store.get(1).title == "Hooks"

    @pytest.mark.parametrize("deadline", ["2026-12-01", datetime(2026, 1, 1, 9, 30), 20261201])
    def test_update_deadline_rejects_non_dates(self, store, memory_storage, deadline):
        with pytest.raises(InvalidInput):
            store.update_deadline(1, deadline)
        assert store.get(1).deadline is None
        assert memory_storage.get(STORAGE_KEY) is None
        # the collection stays usable afterwards
        store.cycle_status(2)
        assert load_technologies(memory_storage.get(STORAGE_KEY))[1].status is Status.NOT_STARTED
        assert store.statistics(date(2026, 10, 19)).upcoming == []

    @pytest.mark.parametrize("text", [None, 5, ["a"]])
    def test_update_notes_rejects_non_text(self, store, memory_storage, text):
        with pytest.raises(InvalidInput):
            store.update_notes(1, text)
        assert store.get(1).notes == ""
        assert memory_storage.get(STORAGE_KEY) is None

    def test_add_rejects_wrong_field_types(self, store):
        with pytest.raises(InvalidInput):
            store.add_technology("Svelte", deadline=datetime(2026, 1, 1))
        with pytest.raises(InvalidInput):
            store.add_technology("Svelte", description=None)
        with pytest.raises(InvalidInput):
            store.add_technology(42)
        assert len(store.technologies) == 3

    @pytest.mark.parametrize("patch", [
        {"deadline": "2026-12-01"},
        {"deadline": datetime(2026, 12, 1)},
        {"notes": 5},
        {"description": None},
        {"title": 7},
        {"notes": "kept?", "deadline": "tomorrow"},
    ])
    def test_edit_rejects_wrong_field_types(self, store, memory_storage, patch):
        before = _snapshot(store)
        with pytest.raises(InvalidInput):
            store.edit_technology(1, **patch)
        assert store.technologies == before
        assert memory_storage.get(STORAGE_KEY) is None


class TestFilter:
    def test_status_and_search_are_combined(self, store):
        result = store.filter(status="completed", search="hook")
        assert [t.title for t in result] == ["Hooks"]

    def test_search_is_case_insensitive_over_description(self, store):
        assert [t.id for t in store.filter(search="JAVASCRIPT")] == [2]

    def test_all_without_search_returns_everything(self, store):
        assert store.filter() == store.technologies

    @pytest.mark.parametrize("status", ["ALL", "All", " all "])
    def test_all_is_case_insensitive(self, store, status):
        assert store.filter(status=status) == store.technologies

    def test_status_only(self, store):
        assert [t.id for t in store.filter(Status.IN_PROGRESS)] == [3]

    def test_filter_returns_new_list(self, store):
        result = store.filter()
        result.clear()
        assert len(store.technologies) == 3


class TestStatistics:
    def test_deadlines_sorted_and_overdue(self, store):
        store.update_deadline(3, date(2026, 10, 1))
        store.update_deadline(2, date(2026, 9, 1))
        store.update_deadline(1, date(2026, 12, 1))
        stats = store.statistics(today=date(2026, 10, 19))
        assert [t.id for t in stats.upcoming] == [2, 3, 1]
        # 2 is completed, so only 3 is overdue
        assert [t.id for t in stats.overdue] == [3]
        assert stats.progress == store.progress()


class TestPersistence:
    """Every change is written through; reloads reproduce the same state."""

    def test_each_mutation_is_persisted(self, store, memory_storage):
        store.cycle_status(3)
        saved = load_technologies(memory_storage.get(STORAGE_KEY))
        assert saved == store.technologies

    def test_reload_reproduces_collection_and_progress(self, store, memory_storage):
        store.add_technology("Testing Library", "RTL")
        store.update_notes(4, "queries")
        store.cycle_status(4)
        reloaded = ProgressStore(memory_storage)
        assert reloaded.technologies == store.technologies
        assert reloaded.progress() == store.progress()
        summary = reloaded.progress()
        assert summary.percent == round(100 * summary.completed / summary.total)

    def test_write_failures_are_logged_and_swallowed(self, caplog):
        storage = FailingStorage(fail_get=False, fail_set=True)
        store = ProgressStore(storage)
        with caplog.at_level(logging.WARNING):
            store.mark_all_completed()
        assert store.progress().percent == 100
        assert storage.writes == 1
        assert "Could not save progress" in caplog.text

    def test_export_import_round_trip(self, store):
        text = store.export_snapshot()
        store.reset_all_statuses()
        assert store.import_snapshot(text) == 3
        assert store.progress().completed == 2

    def test_import_malformed_keeps_collection(self, store):
        before = _snapshot(store)
        with pytest.raises(InvalidInput):
            store.import_snapshot('{"not": "a list"}')
        assert store.technologies == before
