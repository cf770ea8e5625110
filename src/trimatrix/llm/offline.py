# src/trimatrix/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage

_URGENT_WORDS = ("urgent", "asap", "today", "now", "deadline", "至急", "今日", "締切")
_CHORE_WORDS = ("clean", "pay", "file", "report", "tax", "掃除", "支払", "提出")


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - Classifier prompts -> keyword heuristic (urgent words -> Q1, chores -> R3/S3)
    - Decomposer prompts -> three generic steps
    - Suggestion prompts -> the first listed task
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        sp = (system_prompt or "").lower()
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        if "classification module" in sp:
            yield json.dumps({"classifications": [_classify(t) for t in _task_texts(user_text)]}, ensure_ascii=False)
            return

        if "decomposition module" in sp:
            subject = user_text.split(":", 1)[-1].strip().strip('"')
            steps = [f"Clarify the goal of {subject}", f"Do the first step of {subject}", f"Review {subject}"]
            yield json.dumps({"subTasks": steps}, ensure_ascii=False)
            return

        if "suggestion module" in sp:
            yield json.dumps(_suggest(user_text), ensure_ascii=False)
            return

        yield "{}"


def _task_texts(user_text: str) -> list[str]:
    try:
        data = json.loads(user_text)
    except ValueError:
        return []
    texts = data.get("texts") if isinstance(data, dict) else None
    if not isinstance(texts, list):
        return []
    return [t for t in texts if isinstance(t, str)]


def _classify(text: str) -> dict[str, object]:
    low = text.lower()
    urgent = any(w in low for w in _URGENT_WORDS)
    chore = any(w in low for w in _CHORE_WORDS)
    return {
        "task": text,
        "quadrants": {
            "A": "Q1" if urgent else "Q2",
            "B": "R3" if chore else "R1",
            "C": "S3" if chore else "S1",
        },
    }


def _suggest(user_text: str) -> dict[str, str]:
    listing = user_text.split("\n", 1)[-1]
    try:
        tasks = json.loads(listing)
    except ValueError:
        tasks = []
    if not tasks:
        return {"taskText": "", "reason": ""}
    return {
        "taskText": str(tasks[0].get("text", "")),
        "reason": "Offline demo mode: starting with the oldest open task keeps the list moving.",
    }
