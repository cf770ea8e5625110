# src/trimatrix/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The pipeline depends on Protocols instead of concrete implementations,
so the LLM provider, the storage and the timer are swappable in tests.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..pipeline.advisors import Suggestion
    from ..pipeline.gateway import ClassificationResult

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class KeyValueSlot(Protocol):
    """Local persistent key-value storage (one string value per key)."""
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]
# Same shape as asyncio.AbstractEventLoop.call_later(delay, callback).


class Classifier(Protocol):
    """Turns one batch of task texts into validated quadrant triples."""
    async def classify(self, texts: Sequence[str]) -> ClassificationResult: ...


class Decomposer(Protocol):
    async def decompose(self, text: str) -> list[str]: ...


class Advisor(Protocol):
    async def suggest(self, tasks: Sequence[Any]) -> Suggestion: ...
