# src/trimatrix/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- restores the task list (share fragment first, then the local slot) and the cache,
- wires concrete implementations into AppState (LLM/storage/pipeline).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import KeyValueSlot, LLMClient
from ..core.session import TriMatrixSession
from ..core.state import AppState
from ..errors import PersistenceError
from ..llm.client import OpenRouterLLMClient, friendly_llm_error_message
from ..llm.offline import OfflineLLMClient
from ..pipeline.advisors import SuggestionAdvisor, TaskDecomposer
from ..pipeline.gateway import ClassifierGateway
from ..storage.kv_store import InMemoryKeyValueStore, KeyValueStore
from ..storage.snapshot import TaskSnapshot
from ..tasks.task_cache import ClassificationCache
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.state_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.share_link_path.parent.mkdir(parents=True, exist_ok=True)


def _make_llm(settings) -> tuple[LLMClient, bool]:
    try:
        return OpenRouterLLMClient(settings), False
    except RuntimeError as e:
        # Fallback for demos / local runs without external services.
        logger.warning("%s Running in offline demo mode.", friendly_llm_error_message(e))
        return OfflineLLMClient(), True


def create_initial_state(*, settings=None, fragment: str | None = None, llm: LLMClient | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    `fragment` is an optional share link (or just its fragment); when present
    it takes priority over the locally saved list.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    offline = False
    if llm is None:
        llm, offline = _make_llm(settings)

    kv: KeyValueSlot
    try:
        kv = KeyValueStore(settings.state_db_path)
    except PersistenceError:
        logger.exception("Local storage unavailable; this session will not be saved.")
        kv = InMemoryKeyValueStore()
    snapshot = TaskSnapshot(
        kv,
        share_link_path=settings.share_link_path,
        share_base_url=settings.share_base_url,
    )
    tasks = snapshot.load(fragment)

    store = TaskStore(tasks, snapshot=snapshot)
    # Mirror what was restored, so the slot and the share link agree from the start.
    snapshot.save(store.list_tasks())

    session = TriMatrixSession(
        store=store,
        cache=ClassificationCache(kv),
        classifier=ClassifierGateway(llm),
        decomposer=TaskDecomposer(llm),
        advisor=SuggestionAdvisor(llm),
        debounce_seconds=settings.debounce_seconds,
    )
    return AppState(settings=settings, llm=llm, session=session, snapshot=snapshot, offline=offline)
