# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from trimatrix.core.session import TriMatrixSession
from trimatrix.storage.kv_store import InMemoryKeyValueStore
from trimatrix.storage.snapshot import TaskSnapshot
from trimatrix.tasks.task_cache import ClassificationCache
from trimatrix.tasks.task_store import TaskStore

from .fakes import FakeAdvisor, FakeClassifier, FakeDecomposer, FakeTimer


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def snapshot(kv: InMemoryKeyValueStore, tmp_path: Path) -> TaskSnapshot:
    return TaskSnapshot(kv, share_link_path=tmp_path / "share_link.txt", share_base_url="https://example.test/")


@pytest.fixture()
def store(snapshot: TaskSnapshot) -> TaskStore:
    return TaskStore(snapshot=snapshot)


@pytest.fixture()
def cache(kv: InMemoryKeyValueStore) -> ClassificationCache:
    return ClassificationCache(kv)


@pytest.fixture()
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture()
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture()
def advisor() -> FakeAdvisor:
    return FakeAdvisor()


@pytest.fixture()
def decomposer() -> FakeDecomposer:
    return FakeDecomposer()


@pytest.fixture()
def notes() -> list[str]:
    return []


@pytest.fixture()
def session(
    store: TaskStore,
    cache: ClassificationCache,
    classifier: FakeClassifier,
    advisor: FakeAdvisor,
    decomposer: FakeDecomposer,
    timer: FakeTimer,
    notes: list[str],
) -> TriMatrixSession:
    """
    Session wired with deterministic fakes.

    NOTE: store/cache/snapshot are the real implementations (over an
    in-memory slot) because their behavior is part of what we test.
    """
    return TriMatrixSession(
        store=store,
        cache=cache,
        classifier=classifier,
        advisor=advisor,
        decomposer=decomposer,
        call_later=timer.call_later,
        notify=notes.append,
    )
