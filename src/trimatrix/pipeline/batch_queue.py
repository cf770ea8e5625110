# src/trimatrix/pipeline/batch_queue.py

"""
Debounced batch queue.

Collects distinct task texts and flushes them as one batch once input has
been quiet for `debounce_seconds`:

    IDLE --submit--> PENDING --submit--> PENDING (timer refreshed)
    PENDING --expire--> FLUSHING (queue snapshotted and cleared)
    FLUSHING --submit--> PENDING (a new cycle; flushes may overlap)
    flush done: queue empty -> IDLE / FLUSHING, otherwise PENDING with a fresh timer

The timer is injected as a `call_later(delay, callback)` function so tests
can fire expiry directly instead of waiting on the wall clock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from ..core.ports import CallLater, TimerHandle

logger = logging.getLogger(__name__)

FlushHandler = Callable[[list[str]], Awaitable[None]]

DEFAULT_DEBOUNCE_SECONDS = 1.5


class QueueState(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    FLUSHING = "flushing"


def _loop_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class BatchQueue:
    def __init__(
        self,
        flush: FlushHandler,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        call_later: CallLater | None = None,
    ) -> None:
        self._flush = flush
        self._debounce = max(0.0, float(debounce_seconds))
        self._call_later = call_later or _loop_call_later
        self._pending: list[str] = []
        self._timer: TimerHandle | None = None
        self._in_flight: set[asyncio.Task[None]] = set()
        self._batches_sent = 0

    # ---- observable state ----

    @property
    def state(self) -> QueueState:
        if self._timer is not None:
            return QueueState.PENDING
        if self._in_flight:
            return QueueState.FLUSHING
        return QueueState.IDLE

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def batches_sent(self) -> int:
        return self._batches_sent

    def __contains__(self, text: object) -> bool:
        return text in self._pending

    # ---- timer ----

    def _arm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._call_later(self._debounce, self.expire)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # ---- operations ----

    def submit(self, text: str) -> bool:
        """
        Queue `text` and (re)start the debounce timer.

        Returns False (and leaves the timer alone) when the text is already queued.
        """
        if text in self._pending:
            logger.debug("Queue: already pending %r", text)
            return False
        self._pending.append(text)
        self._arm()
        logger.debug("Queue: pending=%d", len(self._pending))
        return True

    def expire(self) -> asyncio.Task[None] | None:
        """
        Debounce timer fired: snapshot the queue as one batch and start flushing it.

        Must run on the event loop thread. Returns the flush task, or None if
        there was nothing to send.
        """
        self._timer = None
        if not self._pending:
            return None

        batch = self._pending
        self._pending = []
        self._batches_sent += 1
        logger.info("Queue: flushing batch #%d size=%d", self._batches_sent, len(batch))

        task = asyncio.get_running_loop().create_task(self._run(batch))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    def flush_now(self) -> asyncio.Task[None] | None:
        """Skip the rest of the debounce window (used on shutdown)."""
        self._disarm()
        return self.expire()

    async def drain(self) -> None:
        """Wait until no flush is in flight (including ones started meanwhile)."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def _run(self, batch: list[str]) -> None:
        try:
            await self._flush(batch)
        except asyncio.CancelledError:
            raise
        except Exception:
            # The flush handler reports expected failures itself.
            logger.exception("Queue: flush handler crashed batch_size=%d", len(batch))
        finally:
            if self._pending:
                self._arm()
