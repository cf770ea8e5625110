# src/trimatrix/tasks/task_cache.py

from __future__ import annotations

import json
import logging
from collections.abc import Mapping

from ..core.ports import KeyValueSlot
from ..errors import PersistenceError, ValidationError
from .task_models import Quadrants

logger = logging.getLogger(__name__)

CACHE_SLOT = "triMatrixTaskCache"


class ClassificationCache:
    """
    Permanent memo: literal task text -> Quadrants.

    Keys are compared by exact text (already stripped by the caller). Entries
    are never expired and outlive the tasks they came from, so re-adding a
    deleted task skips the classifier.
    """

    def __init__(self, slot: KeyValueSlot | None = None) -> None:
        self._slot = slot
        self._entries: dict[str, Quadrants] = {}
        if slot is not None:
            self._entries = self._load(slot)
        logger.info("ClassificationCache ready entries=%d", len(self._entries))

    @staticmethod
    def _load(slot: KeyValueSlot) -> dict[str, Quadrants]:
        try:
            raw = slot.get(CACHE_SLOT)
        except PersistenceError:
            logger.exception("Failed to read cache slot %s", CACHE_SLOT)
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.exception("Failed to parse cache slot %s", CACHE_SLOT)
            return {}
        if not isinstance(data, dict):
            return {}

        out: dict[str, Quadrants] = {}
        for text, triple in data.items():
            try:
                out[text] = Quadrants.from_dict(triple)
            except ValidationError as e:
                logger.warning("Dropping cache entry %r: %s", text, e)
        return out

    def _save(self) -> None:
        if self._slot is None:
            return
        payload = json.dumps(
            {text: q.to_dict() for text, q in self._entries.items()},
            ensure_ascii=False,
        )
        try:
            self._slot.set(CACHE_SLOT, payload)
        except PersistenceError:
            logger.exception("Failed to save cache slot %s", CACHE_SLOT)

    def __contains__(self, text: object) -> bool:
        return text in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, text: str) -> Quadrants | None:
        return self._entries.get(text)

    def put(self, text: str, quadrants: Quadrants) -> None:
        self.put_many({text: quadrants})

    def put_many(self, entries: Mapping[str, Quadrants]) -> None:
        if not entries:
            return
        self._entries.update(entries)
        self._save()
