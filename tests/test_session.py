# tests/test_session.py

from __future__ import annotations

import asyncio
import json

import pytest

from trimatrix.core.session import (
    MSG_BATCH_FAILED,
    MSG_DECOMPOSE_FAILED,
    MSG_NO_ACTIVE_TASKS,
    MSG_SUGGEST_FAILED,
    SubmitOutcome,
    TriMatrixSession,
)
from trimatrix.errors import TransportError, ValidationError
from trimatrix.matrix.quadrants import Matrix
from trimatrix.pipeline.batch_queue import QueueState
from trimatrix.pipeline.gateway import ClassificationResult
from trimatrix.storage.snapshot import TASKS_SLOT
from trimatrix.tasks.task_cache import ClassificationCache
from trimatrix.tasks.task_models import Quadrants, Task
from trimatrix.tasks.task_store import TaskStore

from .fakes import DEFAULT_TRIPLE, FakeAdvisor, FakeClassifier, FakeDecomposer, FakeTimer


async def _flush(timer: FakeTimer) -> None:
    """Expire the debounce window and let the flush reach the classifier."""
    timer.fire()
    await asyncio.sleep(0)


def _seed(store: TaskStore, *texts: str) -> list[Task]:
    tasks = [Task(id=f"seed{i}", text=t, quadrants=DEFAULT_TRIPLE) for i, t in enumerate(texts)]
    store.add_many(tasks)
    return tasks


# ---- entry / batching ----


@pytest.mark.asyncio
async def test_two_quick_entries_make_one_classifier_call(
    session: TriMatrixSession, classifier: FakeClassifier, timer: FakeTimer, kv
) -> None:
    x, y = "仕事Xを片付ける", "仕事Yを片付ける"
    classifier.triples = {x: Quadrants("Q1", "R3", "S3"), y: Quadrants("Q2", "R1", "S1")}

    assert session.submit(x) is SubmitOutcome.QUEUED
    assert session.submit(y) is SubmitOutcome.QUEUED
    assert session.store.list_tasks() == []

    await _flush(timer)
    assert classifier.calls == [[x, y]]
    assert session.is_loading

    classifier.resolve(0)
    await session.queue.drain()

    tasks = session.store.list_tasks()
    assert [(t.text, t.quadrants) for t in tasks] == [(x, Quadrants("Q1", "R3", "S3")), (y, Quadrants("Q2", "R1", "S1"))]
    assert session.cache.lookup(x) == Quadrants("Q1", "R3", "S3")
    assert [t["text"] for t in json.loads(kv.get(TASKS_SLOT))] == [x, y]
    assert not session.is_loading
    assert session.queue.state is QueueState.IDLE


@pytest.mark.asyncio
async def test_cache_hit_skips_classifier(
    session: TriMatrixSession, cache: ClassificationCache, classifier: FakeClassifier, timer: FakeTimer
) -> None:
    cache.put("pay rent", Quadrants("Q1", "R3", "S3"))

    assert session.submit("  pay rent  ") is SubmitOutcome.CACHED
    assert classifier.calls == []
    assert timer.handles == []
    [task] = session.store.list_tasks()
    assert task.text == "pay rent"
    assert task.quadrants == Quadrants("Q1", "R3", "S3")


@pytest.mark.asyncio
async def test_readding_deleted_task_uses_cache(
    session: TriMatrixSession, classifier: FakeClassifier, timer: FakeTimer
) -> None:
    session.submit("water plants")
    await _flush(timer)
    classifier.resolve(0)
    await session.queue.drain()

    [task] = session.store.list_tasks()
    session.delete(task.id)
    assert session.submit("water plants") is SubmitOutcome.CACHED
    assert len(classifier.calls) == 1


@pytest.mark.asyncio
async def test_blank_and_duplicate_entries(session: TriMatrixSession, timer: FakeTimer) -> None:
    assert session.submit("   ") is SubmitOutcome.EMPTY
    assert session.submit("") is SubmitOutcome.EMPTY
    assert session.submit("a") is SubmitOutcome.QUEUED
    assert session.submit(" a ") is SubmitOutcome.ALREADY_QUEUED
    assert session.queue.pending == ["a"]


@pytest.mark.asyncio
async def test_overlapping_batches_resolve_in_any_order(
    session: TriMatrixSession, classifier: FakeClassifier, timer: FakeTimer
) -> None:
    session.submit("first")
    await _flush(timer)
    session.submit("second")
    await _flush(timer)
    assert classifier.calls == [["first"], ["second"]]
    assert session.queue.in_flight == 2

    classifier.resolve(1)
    await asyncio.sleep(0)
    classifier.resolve(0)
    await session.queue.drain()

    tasks = session.store.list_tasks()
    assert [t.text for t in tasks] == ["second", "first"]
    assert len({t.id for t in tasks}) == 2


@pytest.mark.asyncio
async def test_task_deleted_while_batch_in_flight(
    session: TriMatrixSession, classifier: FakeClassifier, timer: FakeTimer
) -> None:
    [old] = _seed(session.store, "old")
    session.submit("new")
    await _flush(timer)
    session.delete(old.id)

    classifier.resolve(0)
    await session.queue.drain()
    assert [t.text for t in session.store.list_tasks()] == ["new"]


@pytest.mark.asyncio
async def test_failed_batch_reports_once_and_adds_nothing(
    session: TriMatrixSession, classifier: FakeClassifier, timer: FakeTimer, notes: list[str]
) -> None:
    session.submit("a")
    session.submit("b")
    await _flush(timer)
    classifier.fail(0, TransportError("HTTP 500"))
    await session.queue.drain()

    assert session.store.list_tasks() == []
    assert len(session.cache) == 0
    assert session.error == MSG_BATCH_FAILED
    assert notes == [MSG_BATCH_FAILED]

    # the next batch starts with a clean error
    session.submit("c")
    await _flush(timer)
    assert session.error is None
    classifier.resolve(1)
    await session.queue.drain()
    assert notes[-1] == f"Added 1 task(s): c [{DEFAULT_TRIPLE}]"


@pytest.mark.asyncio
async def test_unexpected_classifier_crash_is_reported(
    session: TriMatrixSession, classifier: FakeClassifier, timer: FakeTimer
) -> None:
    session.submit("a")
    await _flush(timer)
    classifier.fail(0, KeyError("surprise"))
    await session.queue.drain()
    assert session.error == MSG_BATCH_FAILED
    assert session.store.list_tasks() == []


@pytest.mark.asyncio
async def test_partially_valid_batch_adds_only_valid_tasks(
    session: TriMatrixSession, classifier: FakeClassifier, timer: FakeTimer
) -> None:
    session.submit("kept")
    session.submit("lost")
    await _flush(timer)
    classifier.resolve(0, ClassificationResult(pairs=[("kept", DEFAULT_TRIPLE)]))
    await session.queue.drain()

    assert [t.text for t in session.store.list_tasks()] == ["kept"]
    assert "lost" not in session.cache
    assert session.error is None


@pytest.mark.asyncio
async def test_close_flushes_pending_entries(store: TaskStore, cache: ClassificationCache) -> None:
    session = TriMatrixSession(
        store=store,
        cache=cache,
        classifier=FakeClassifier(auto=True),
        call_later=FakeTimer().call_later,
    )
    session.submit("a")
    await session.close()
    assert [t.text for t in store.list_tasks()] == ["a"]


# ---- mutations ----


def test_toggle_and_clear_completed(session: TriMatrixSession) -> None:
    a, b = _seed(session.store, "a", "b")
    session.toggle_completed(a.id)
    assert session.store.get(a.id).completed is True
    assert session.clear_completed() == 1
    assert [t.id for t in session.store.list_tasks()] == [b.id]


def test_move_only_within_active_matrix(session: TriMatrixSession) -> None:
    [t] = _seed(session.store, "a")

    with pytest.raises(ValidationError, match=r"use Q1, Q2, Q3, Q4"):
        session.move(t.id, "R2")
    assert session.store.get(t.id).quadrants == DEFAULT_TRIPLE

    session.move(t.id, "Q4")
    session.active_matrix = Matrix.B
    session.move(t.id, "R2")
    session.move(t.id, "S4", Matrix.C)
    assert session.store.get(t.id).quadrants == Quadrants("Q4", "R2", "S4")


def test_move_to_same_key_is_harmless(session: TriMatrixSession) -> None:
    [t] = _seed(session.store, "a")
    session.move(t.id, DEFAULT_TRIPLE.a)
    assert session.store.get(t.id).quadrants == DEFAULT_TRIPLE


# ---- suggestions ----


@pytest.mark.asyncio
async def test_suggestion_uses_active_tasks_only(session: TriMatrixSession, advisor: FakeAdvisor) -> None:
    a, _ = _seed(session.store, "done one", "write report")
    session.toggle_completed(a.id)

    s = await session.request_suggestion()
    assert s is not None and s.task_text == "write report"
    assert advisor.calls == [["write report"]]
    assert session.suggestion == s
    assert not session.is_suggesting


@pytest.mark.asyncio
async def test_any_mutation_drops_the_suggestion(session: TriMatrixSession) -> None:
    a, b = _seed(session.store, "a", "b")

    mutations = [
        lambda: session.toggle_completed(a.id),
        lambda: session.move(b.id, "Q3"),
        lambda: session.delete(a.id),
        lambda: session.submit("brand new"),
        lambda: session.clear_completed(),
        lambda: session.store.add(Task(id="merged", text="merged", quadrants=DEFAULT_TRIPLE)),
    ]
    for mutate in mutations:
        assert await session.request_suggestion() is not None
        mutate()
        assert session.suggestion is None


@pytest.mark.asyncio
async def test_suggestion_for_outdated_list_is_discarded(session: TriMatrixSession, advisor: FakeAdvisor) -> None:
    [t] = _seed(session.store, "a")
    advisor.gate = asyncio.Event()

    pending = asyncio.create_task(session.request_suggestion())
    await asyncio.sleep(0)
    assert session.is_suggesting
    session.move(t.id, "Q1")
    advisor.gate.set()

    assert await pending is None
    assert session.suggestion is None


@pytest.mark.asyncio
async def test_no_active_tasks_skips_the_advisor(
    session: TriMatrixSession, advisor: FakeAdvisor, notes: list[str]
) -> None:
    [t] = _seed(session.store, "a")
    session.toggle_completed(t.id)

    assert await session.request_suggestion() is None
    assert advisor.calls == []
    assert session.error == MSG_NO_ACTIVE_TASKS
    assert notes == [MSG_NO_ACTIVE_TASKS]


@pytest.mark.asyncio
async def test_suggestion_failure_is_reported(session: TriMatrixSession, advisor: FakeAdvisor) -> None:
    _seed(session.store, "a")
    advisor.error = TransportError("timeout")
    assert await session.request_suggestion() is None
    assert session.error == MSG_SUGGEST_FAILED
    assert session.suggestion is None


# ---- decomposition ----


@pytest.mark.asyncio
async def test_decompose_then_add_subtasks_replaces_parent(
    session: TriMatrixSession, decomposer: FakeDecomposer, cache: ClassificationCache, timer: FakeTimer
) -> None:
    [parent] = _seed(session.store, "plan the trip")
    cache.put("step one", Quadrants("Q1", "R1", "S1"))

    subtasks = await session.decompose(parent.id)
    assert subtasks == ["step one", "step two", "step three"]
    assert decomposer.calls == ["plan the trip"]

    outcomes = session.add_subtasks(parent.id, subtasks[:2])
    assert outcomes == [SubmitOutcome.CACHED, SubmitOutcome.QUEUED]
    assert session.store.get(parent.id) is None
    assert [t.text for t in session.store.list_tasks()] == ["step one"]
    assert session.queue.pending == ["step two"]


@pytest.mark.asyncio
async def test_decompose_unknown_task_or_failure(session: TriMatrixSession, decomposer: FakeDecomposer) -> None:
    assert await session.decompose("missing") == []
    assert decomposer.calls == []

    [t] = _seed(session.store, "a")
    decomposer.error = TransportError("bad json")
    assert await session.decompose(t.id) == []
    assert session.error == MSG_DECOMPOSE_FAILED
    assert not session.is_decomposing
