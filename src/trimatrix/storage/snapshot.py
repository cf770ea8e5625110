# src/trimatrix/storage/snapshot.py

"""
Durable task-list snapshot.

Every change is written to two sinks:
- the local key-value slot TASKS_SLOT (plain JSON),
- a shareable link whose URL fragment is base64(JSON), so a list can be
  restored from the link alone.

On load the fragment (if given) wins over the local slot. Broken data never
stops startup: it is logged and the list starts empty.
"""

from __future__ import annotations

import base64
import binascii
import contextlib
import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ..core.ports import KeyValueSlot
from ..errors import PersistenceError, ValidationError
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

TASKS_SLOT = "triMatrixTasks"


def dump_tasks(tasks: Sequence[Task]) -> str:
    return json.dumps([t.to_dict() for t in tasks], ensure_ascii=False)


def encode_fragment(payload: str) -> str:
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_fragment(fragment: str) -> str:
    """
    Decode a share fragment back to JSON text.

    Accepts a bare fragment, "#fragment" or a whole URL.
    Raises ValueError on anything that is not valid base64 UTF-8.
    """
    raw = fragment.strip()
    if "#" in raw:
        raw = raw.split("#", 1)[1]
    if not raw:
        raise ValueError("empty fragment")
    try:
        return base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("fragment is not base64-encoded UTF-8") from e


def migrate_tasks(items: list[Any]) -> list[Task]:
    """Parse snapshot items; items that fail validation are dropped one by one."""
    out: list[Task] = []
    seen: set[str] = set()
    for item in items:
        try:
            task = Task.from_dict(item)
        except ValidationError as e:
            logger.warning("Dropping invalid snapshot item: %s", e)
            continue
        if task.id in seen:
            logger.warning("Dropping snapshot item with duplicate id=%s", task.id)
            continue
        seen.add(task.id)
        out.append(task)
    return out


class TaskSnapshot:
    """Writes and restores the task list (local slot + share link)."""

    def __init__(
        self,
        slot: KeyValueSlot,
        *,
        share_link_path: str | Path | None = None,
        share_base_url: str = "",
    ) -> None:
        self._slot = slot
        self._share_link_path = Path(share_link_path) if share_link_path else None
        self._share_base_url = share_base_url
        self.fragment: str = ""

    @property
    def share_url(self) -> str:
        if not self.fragment:
            return ""
        return f"{self._share_base_url}#{self.fragment}"

    def save(self, tasks: Sequence[Task]) -> None:
        payload = dump_tasks(tasks)
        try:
            self._slot.set(TASKS_SLOT, payload)
        except PersistenceError:
            logger.exception("Failed to save tasks to slot %s", TASKS_SLOT)

        self.fragment = encode_fragment(payload) if tasks else ""
        self._write_share_link()

    def _write_share_link(self) -> None:
        path = self._share_link_path
        if path is None:
            return
        try:
            if not self.fragment:
                with contextlib.suppress(FileNotFoundError):
                    path.unlink()
                return
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(self.share_url + "\n", "utf-8")
            os.replace(tmp, path)
        except OSError:
            logger.exception("Failed to write share link to %s", path)

    def load(self, fragment: str | None = None) -> list[Task]:
        if fragment and fragment.strip().strip("#"):
            try:
                data = json.loads(decode_fragment(fragment))
            except ValueError:
                # json.JSONDecodeError is a ValueError too.
                logger.exception("Failed to load tasks from share fragment")
                return []
            if isinstance(data, list):
                tasks = migrate_tasks(data)
                logger.info("Loaded %d task(s) from share fragment", len(tasks))
                return tasks
            logger.warning("Share fragment does not hold a task list; trying local slot")

        try:
            raw = self._slot.get(TASKS_SLOT)
        except PersistenceError:
            logger.exception("Failed to read tasks from slot %s", TASKS_SLOT)
            return []
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.exception("Failed to parse tasks from slot %s", TASKS_SLOT)
            return []
        if not isinstance(data, list):
            logger.warning("Slot %s does not hold a task list; starting empty", TASKS_SLOT)
            return []
        tasks = migrate_tasks(data)
        logger.info("Loaded %d task(s) from slot %s", len(tasks), TASKS_SLOT)
        return tasks
