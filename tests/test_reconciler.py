# tests/test_reconciler.py

from __future__ import annotations

import itertools

from trimatrix.pipeline.reconciler import MergeReconciler
from trimatrix.tasks.task_cache import ClassificationCache
from trimatrix.tasks.task_models import Quadrants, Task
from trimatrix.tasks.task_store import TaskStore


def _ids():
    counter = itertools.count(1)
    return lambda: f"t{next(counter)}"


def test_merge_appends_tasks_and_fills_cache(store: TaskStore, cache: ClassificationCache) -> None:
    q1, q2 = Quadrants("Q1", "R1", "S1"), Quadrants("Q3", "R4", "S2")
    rec = MergeReconciler(store, cache, id_factory=_ids())

    added = rec.merge([("a", q1), ("b", q2)])

    assert [t.id for t in added] == ["t1", "t2"]
    assert store.list_tasks() == added
    assert cache.lookup("a") == q1
    assert cache.lookup("b") == q2


def test_merge_tolerates_store_changes_while_in_flight(store: TaskStore, cache: ClassificationCache) -> None:
    q = Quadrants("Q2", "R2", "S2")
    store.add(Task(id="x", text="existing", quadrants=q))
    store.remove("x")
    store.add(Task(id="y", text="a", quadrants=q))

    added = MergeReconciler(store, cache, id_factory=_ids()).merge([("a", q)])

    # identical texts are allowed as separate tasks
    assert [t.text for t in store.list_tasks()] == ["a", "a"]
    assert added[0].id == "t1"


def test_merge_of_nothing_changes_nothing(store: TaskStore, cache: ClassificationCache) -> None:
    events: list[str] = []
    store.subscribe(events.append)
    assert MergeReconciler(store, cache).merge([]) == []
    assert events == []
    assert len(cache) == 0
