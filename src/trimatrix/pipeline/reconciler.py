# src/trimatrix/pipeline/reconciler.py

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from ..tasks.task_cache import ClassificationCache
from ..tasks.task_models import Quadrants, Task, new_task_id
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


class MergeReconciler:
    """
    Apply one batch's classifications to the store and the cache.

    The store may have changed arbitrarily while the batch was in flight
    (tasks deleted, other batches merged first). Merging only ever appends
    new tasks, so it makes no assumption about that. Texts that already exist
    as tasks are appended again: identical reminders are allowed.
    """

    def __init__(
        self,
        store: TaskStore,
        cache: ClassificationCache,
        *,
        id_factory: Callable[[], str] = new_task_id,
    ) -> None:
        self._store = store
        self._cache = cache
        self._id_factory = id_factory

    def merge(self, pairs: Sequence[tuple[str, Quadrants]]) -> list[Task]:
        if not pairs:
            return []
        tasks = [Task(id=self._id_factory(), text=text, quadrants=q) for text, q in pairs]
        # Both writes happen without yielding to the event loop.
        self._store.add_many(tasks)
        self._cache.put_many({text: q for text, q in pairs})
        logger.info("Merged %d classified task(s); store total=%d", len(tasks), len(self._store))
        return tasks
