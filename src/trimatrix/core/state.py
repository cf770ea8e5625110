# src/trimatrix/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..storage.snapshot import TaskSnapshot
from .ports import LLMClient
from .session import TriMatrixSession


@dataclass(slots=True)
class AppState:
    """
    Shared application state (composition result).

    Built once by cli/bootstrap.py and passed to connectors and commands.
    """

    settings: Any
    llm: LLMClient
    session: TriMatrixSession
    snapshot: TaskSnapshot
    offline: bool = False
    # Sub-tasks proposed by /split, waiting for the user to pick: (parent_id, sub_tasks).
    pending_split: tuple[str, list[str]] | None = None
