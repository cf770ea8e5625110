# src/trimatrix/core/session.py

"""
Session orchestration.

One TriMatrixSession owns the task store, the classification cache and the
batch queue, and is the only place front-ends talk to. It is transport-
agnostic: the console connector (or a test) calls its operations and reads
`error`, `suggestion` and `is_loading` back.

Key invariants:
- a task enters the store only with a complete triple (cache hit or a
  validated classifier result), never "unclassified",
- cache hits bypass the queue and never call the classifier,
- any task mutation drops the held suggestion; a suggestion that arrives
  after the task list changed is discarded,
- external failures end as one user-visible message, never as partial state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import StrEnum

from ..errors import TransportError, ValidationError
from ..matrix.quadrants import Matrix, domain, is_valid_key
from ..pipeline.advisors import Suggestion
from ..pipeline.batch_queue import DEFAULT_DEBOUNCE_SECONDS, BatchQueue
from ..pipeline.reconciler import MergeReconciler
from ..tasks.task_cache import ClassificationCache
from ..tasks.task_models import Task, new_task_id
from ..tasks.task_store import TaskStore
from .ports import Advisor, CallLater, Classifier, Decomposer

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]

MSG_BATCH_FAILED = "Could not classify the task batch. Please try again."
MSG_NO_ACTIVE_TASKS = "There are no active tasks to work on."
MSG_SUGGEST_FAILED = "Could not get a suggestion from the AI. Please try again."
MSG_DECOMPOSE_FAILED = "Could not decompose the task. Please try again."
MSG_FEATURE_OFF = "This feature is not configured."


class SubmitOutcome(StrEnum):
    EMPTY = "empty"
    CACHED = "cached"  # added immediately from the cache
    QUEUED = "queued"
    ALREADY_QUEUED = "already_queued"


class TriMatrixSession:
    def __init__(
        self,
        *,
        store: TaskStore,
        cache: ClassificationCache,
        classifier: Classifier,
        decomposer: Decomposer | None = None,
        advisor: Advisor | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        call_later: CallLater | None = None,
        id_factory: Callable[[], str] = new_task_id,
        notify: Notifier | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self._classifier = classifier
        self._decomposer = decomposer
        self._advisor = advisor
        self._id_factory = id_factory
        self._notify = notify

        self.reconciler = MergeReconciler(store, cache, id_factory=id_factory)
        self.queue = BatchQueue(
            self._classify_batch,
            debounce_seconds=debounce_seconds,
            call_later=call_later,
        )

        self.active_matrix: Matrix = Matrix.A
        self.error: str | None = None
        self.suggestion: Suggestion | None = None
        self.is_suggesting = False
        self.is_decomposing = False
        self._generation = 0

        store.subscribe(self._on_store_change)

    # ---- helpers ----

    @property
    def is_loading(self) -> bool:
        return self.queue.in_flight > 0

    def _invalidate_advice(self) -> None:
        self._generation += 1
        if self.suggestion is not None:
            logger.debug("Suggestion invalidated")
        self.suggestion = None

    def _on_store_change(self, op: str) -> None:
        self._invalidate_advice()

    def _report(self, message: str) -> None:
        self.error = message
        if self._notify is not None:
            self._notify(message)

    def set_notifier(self, notify: Notifier | None) -> None:
        self._notify = notify

    # ---- task entry ----

    def submit(self, text: str) -> SubmitOutcome:
        """Enter a new task: cache hit -> added now, otherwise queued for classification."""
        text = (text or "").strip()
        if not text:
            return SubmitOutcome.EMPTY

        self._invalidate_advice()

        cached = self.cache.lookup(text)
        if cached is not None:
            self.store.add(Task(id=self._id_factory(), text=text, quadrants=cached))
            logger.debug("Cache hit for %r", text)
            return SubmitOutcome.CACHED

        if self.queue.submit(text):
            return SubmitOutcome.QUEUED
        return SubmitOutcome.ALREADY_QUEUED

    async def _classify_batch(self, batch: list[str]) -> None:
        self.error = None
        try:
            result = await self._classifier.classify(batch)
        except TransportError as e:
            logger.warning("Batch classification failed size=%d: %s", len(batch), e)
            self._report(MSG_BATCH_FAILED)
            return
        except Exception:
            logger.exception("Batch classification crashed size=%d", len(batch))
            self._report(MSG_BATCH_FAILED)
            return

        added = self.reconciler.merge(result.pairs)
        if added and self._notify is not None:
            listing = ", ".join(f"{t.text} [{t.quadrants}]" for t in added)
            self._notify(f"Added {len(added)} task(s): {listing}")

    # ---- direct mutations ----

    def delete(self, task_id: str) -> None:
        self._invalidate_advice()
        self.store.remove(task_id)

    def toggle_completed(self, task_id: str) -> None:
        self._invalidate_advice()
        self.store.toggle_completed(task_id)

    def clear_completed(self) -> int:
        """Remove every completed task. Confirmation is the front-end's job."""
        self._invalidate_advice()
        return self.store.clear_completed()

    def move(self, task_id: str, key: str, matrix: Matrix | None = None) -> None:
        """
        Drag-and-drop: put a task into quadrant `key` of one matrix.

        `matrix` defaults to the active matrix. A key from another matrix's
        domain raises ValidationError and changes nothing.
        """
        matrix = matrix or self.active_matrix
        if not is_valid_key(matrix, key):
            allowed = ", ".join(sorted(domain(matrix)))
            raise ValidationError(f"{key!r} is not a quadrant of matrix {matrix.value} (use {allowed})")
        self._invalidate_advice()
        self.store.reassign(task_id, matrix, key)

    # ---- advisors ----

    async def request_suggestion(self) -> Suggestion | None:
        active = self.store.active_tasks()
        if not active:
            self._report(MSG_NO_ACTIVE_TASKS)
            return None
        if self._advisor is None:
            self._report(MSG_FEATURE_OFF)
            return None

        self.error = None
        self.suggestion = None
        generation = self._generation
        self.is_suggesting = True
        try:
            suggestion = await self._advisor.suggest(active)
        except Exception:
            logger.exception("Suggestion request failed")
            self._report(MSG_SUGGEST_FAILED)
            return None
        finally:
            self.is_suggesting = False

        if generation != self._generation:
            logger.info("Discarding suggestion made for an outdated task list")
            return None
        self.suggestion = suggestion
        return suggestion

    async def decompose(self, task_id: str) -> list[str]:
        task = self.store.get(task_id)
        if task is None:
            return []
        if self._decomposer is None:
            self._report(MSG_FEATURE_OFF)
            return []

        self.error = None
        self.is_decomposing = True
        try:
            return await self._decomposer.decompose(task.text)
        except Exception:
            logger.exception("Decomposition failed for task id=%s", task_id)
            self._report(MSG_DECOMPOSE_FAILED)
            return []
        finally:
            self.is_decomposing = False

    def add_subtasks(self, parent_id: str, selected: Sequence[str]) -> list[SubmitOutcome]:
        """Submit the chosen sub-tasks, then delete the task they replace."""
        outcomes = [self.submit(text) for text in selected]
        self.delete(parent_id)
        return outcomes

    # ---- lifecycle ----

    async def close(self, *, flush_pending: bool = True) -> None:
        if flush_pending:
            self.queue.flush_now()
        await self.queue.drain()
