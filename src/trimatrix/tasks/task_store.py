# src/trimatrix/tasks/task_store.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

from ..errors import InvariantViolation
from ..matrix.quadrants import Matrix
from .task_models import Progress, Quadrants, Task

if TYPE_CHECKING:
    from ..storage.snapshot import TaskSnapshot

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


class TaskStore:
    """
    Canonical, ordered list of classified tasks.

    Invariants:
    - every stored Task carries a complete Quadrants triple,
    - ids are unique within the store.

    Every mutation synchronously writes the whole list to the snapshot (if one
    is attached) and then notifies change listeners with the operation name.
    Operations on an unknown id are no-ops and neither persist nor notify.
    """

    def __init__(self, tasks: Iterable[Task] = (), *, snapshot: TaskSnapshot | None = None) -> None:
        self._tasks: list[Task] = []
        self._snapshot = snapshot
        self._listeners: list[ChangeListener] = []
        for t in tasks:
            self._check(t, self._tasks)
            self._tasks.append(t)
        logger.info("TaskStore ready total=%d", len(self._tasks))

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    # ---- low-level helpers ----

    @staticmethod
    def _check(task: Task, existing: Sequence[Task]) -> None:
        if not isinstance(task.quadrants, Quadrants):
            raise InvariantViolation(f"task {task.id} has no quadrant triple")
        if not task.text or not task.text.strip():
            raise InvariantViolation(f"task {task.id} has empty text")
        if any(t.id == task.id for t in existing):
            raise InvariantViolation(f"duplicate task id {task.id}")

    def _index(self, task_id: str) -> int | None:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return None

    def _changed(self, op: str) -> None:
        if self._snapshot is not None:
            self._snapshot.save(self._tasks)
        for listener in list(self._listeners):
            listener(op)

    # ---- public API ----

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, task_id: str) -> Task | None:
        i = self._index(task_id)
        return None if i is None else self._tasks[i]

    def list_tasks(self) -> list[Task]:
        return list(self._tasks)

    def active_tasks(self) -> list[Task]:
        return [t for t in self._tasks if not t.completed]

    def tasks_in(self, matrix: Matrix, key: str) -> list[Task]:
        return [t for t in self._tasks if t.quadrants.get(matrix) == key]

    def progress(self) -> Progress:
        done = sum(1 for t in self._tasks if t.completed)
        return Progress(completed=done, total=len(self._tasks))

    def add(self, task: Task) -> None:
        self.add_many([task])

    def add_many(self, tasks: Sequence[Task]) -> None:
        """Append all tasks at once; nothing is appended if any of them is invalid."""
        if not tasks:
            return
        staged = list(self._tasks)
        for t in tasks:
            self._check(t, staged)
            staged.append(t)
        self._tasks = staged
        logger.debug("Tasks added n=%d total=%d", len(tasks), len(self._tasks))
        self._changed("add")

    def remove(self, task_id: str) -> None:
        i = self._index(task_id)
        if i is None:
            return
        del self._tasks[i]
        logger.debug("Task removed id=%s", task_id)
        self._changed("remove")

    def toggle_completed(self, task_id: str) -> None:
        i = self._index(task_id)
        if i is None:
            return
        t = self._tasks[i]
        self._tasks[i] = replace(t, completed=not t.completed)
        self._changed("toggle")

    def reassign(self, task_id: str, matrix: Matrix, new_key: str) -> None:
        """Move a task in one matrix. The caller has already validated `new_key`."""
        i = self._index(task_id)
        if i is None:
            return
        t = self._tasks[i]
        self._tasks[i] = replace(t, quadrants=t.quadrants.with_key(matrix, new_key))
        logger.debug("Task reassigned id=%s matrix=%s key=%s", task_id, matrix.value, new_key)
        self._changed("reassign")

    def clear_completed(self) -> int:
        before = len(self._tasks)
        self._tasks = [t for t in self._tasks if not t.completed]
        removed = before - len(self._tasks)
        logger.info("Cleared %d completed task(s)", removed)
        self._changed("clear_completed")
        return removed
