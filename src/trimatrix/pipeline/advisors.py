# src/trimatrix/pipeline/advisors.py

"""
Secondary LLM boundaries: task decomposition and "what next" suggestions.

Both use the same LLM port and JSON contract style as the classifier.
A failed call raises TransportError; the session turns it into a user message.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..core.ports import LLMClient
from ..errors import TransportError
from ..tasks.task_models import Task
from .gateway import collect_json

logger = logging.getLogger(__name__)

MIN_SUBTASKS = 3
MAX_SUBTASKS = 5

DECOMPOSER_SYSTEM_PROMPT = """
You are an experienced project manager and a task decomposition module.

Split the given task into 3 to 5 concrete, actionable sub-tasks.

Output format (JSON only, no prose):
{"subTasks": ["<sub-task>", "..."]}
""".strip()

SUGGESTION_SYSTEM_PROMPT = """
You are a productivity coach and a suggestion module.

You receive a user's task list. Each task is classified in three matrices
(A: importance x urgency, B: want x required, C: want x can).
Pick exactly ONE task the user should start next and explain why in one or
two short, motivating sentences.

Output format (JSON only, no prose):
{"taskText": "<text of the chosen task, copied exactly>", "reason": "<why>"}
""".strip()


@dataclass(frozen=True, slots=True)
class Suggestion:
    task_text: str
    reason: str


class TaskDecomposer:
    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def decompose(self, text: str) -> list[str]:
        messages = [{"role": "user", "content": f'Task to decompose: "{text}"'}]
        data = await asyncio.to_thread(collect_json, self._llm, messages, DECOMPOSER_SYSTEM_PROMPT)

        raw = data.get("subTasks") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            raise TransportError("response has no 'subTasks' list")

        out: list[str] = []
        for item in raw:
            s = str(item).strip() if isinstance(item, str) else ""
            if s and s not in out:
                out.append(s)
        if len(out) < MIN_SUBTASKS:
            logger.warning("Decomposer: only %d sub-task(s) for %r", len(out), text)
        return out[:MAX_SUBTASKS]


class SuggestionAdvisor:
    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def suggest(self, tasks: Sequence[Task]) -> Suggestion:
        listing = json.dumps([t.to_dict() for t in tasks], ensure_ascii=False, indent=2)
        messages = [{"role": "user", "content": f"Task list:\n{listing}"}]
        data = await asyncio.to_thread(collect_json, self._llm, messages, SUGGESTION_SYSTEM_PROMPT)

        if not isinstance(data, dict):
            raise TransportError("suggestion response is not an object")
        task_text = data.get("taskText")
        reason = data.get("reason")
        if not isinstance(task_text, str) or not task_text.strip():
            raise TransportError("suggestion response has no 'taskText'")
        return Suggestion(task_text=task_text.strip(), reason=str(reason or "").strip())
