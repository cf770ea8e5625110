# src/trimatrix/pipeline/gateway.py

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..core.ports import ChatMessage, LLMClient
from ..errors import TransportError, ValidationError
from ..matrix.quadrants import describe_domains
from ..tasks.task_models import Quadrants

logger = logging.getLogger(__name__)

CLASSIFIER_SYSTEM_PROMPT = """
You are a task classification module.

You receive a JSON object {{"texts": ["<task>", ...]}} and classify every
task in three independent 2x2 matrices. Use only the quadrant keys listed below.

{domains}

Output format (JSON only, no prose, no markdown fences):
{{"classifications": [{{"task": "<task text, copied exactly>", "quadrants": {{"A": "Q1", "B": "R1", "C": "S1"}}}}]}}

Rules:
- Include every task from the list exactly once.
- Copy the task text exactly as given, character for character (including line breaks).
- A must be one of Q1-Q4, B one of R1-R4, C one of S1-S4.
""".strip()


def extract_json_object(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def collect_json(llm: LLMClient, messages: list[ChatMessage], system_prompt: str) -> Any:
    """
    Run one blocking LLM call and parse the JSON object it returns.

    Any failure (transport, empty output, unparsable JSON) becomes TransportError.
    """
    raw = ""
    try:
        for piece in llm.stream_chat(messages, system_prompt):
            raw += piece
    except Exception as e:
        raise TransportError(f"LLM call failed: {e}") from e

    raw = raw.strip()
    if not raw:
        raise TransportError("LLM returned no content")
    try:
        return json.loads(extract_json_object(raw))
    except ValueError as e:
        logger.debug("Unparsable LLM output: %r", raw[:2000])
        raise TransportError("LLM returned malformed JSON") from e


@dataclass(frozen=True, slots=True)
class DroppedItem:
    item: Any
    reason: str


@dataclass(slots=True)
class ClassificationResult:
    pairs: list[tuple[str, Quadrants]] = field(default_factory=list)
    dropped: list[DroppedItem] = field(default_factory=list)

    def texts(self) -> list[str]:
        return [text for text, _ in self.pairs]


def validate_item(item: Any, batch: frozenset[str]) -> tuple[str, Quadrants]:
    """Check one response item; raises ValidationError if it must be dropped."""
    if not isinstance(item, dict):
        raise ValidationError("item is not an object")
    text = item.get("task")
    if not isinstance(text, str) or text not in batch:
        raise ValidationError(f"task {text!r} was not in the submitted batch")
    return text, Quadrants.from_dict(item.get("quadrants"))


def build_request(texts: Sequence[str]) -> list[ChatMessage]:
    """One user message holding {"texts": [...]}; texts may contain newlines."""
    body = json.dumps({"texts": list(texts)}, ensure_ascii=False)
    return [{"role": "user", "content": body}]


class ClassifierGateway:
    """
    Adapter between one batch of task texts and the external classifier.

    Validation is best-effort per item: a bad item is dropped (and logged),
    the rest of the batch still goes through. Only a failed call as a whole
    raises (TransportError), and then nothing from the batch is returned.
    """

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm
        self._system_prompt = CLASSIFIER_SYSTEM_PROMPT.format(domains=describe_domains())

    async def classify(self, texts: Sequence[str]) -> ClassificationResult:
        if not texts:
            raise ValueError("empty batch")

        logger.info("Classifier: sending batch size=%d", len(texts))
        data = await asyncio.to_thread(collect_json, self._llm, build_request(texts), self._system_prompt)

        items = data.get("classifications") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise TransportError("response has no 'classifications' list")

        return self._validate(items, frozenset(texts))

    @staticmethod
    def _validate(items: list[Any], batch: frozenset[str]) -> ClassificationResult:
        result = ClassificationResult()
        seen: set[str] = set()
        for item in items:
            try:
                text, quadrants = validate_item(item, batch)
                if text in seen:
                    raise ValidationError(f"task {text!r} classified more than once")
            except ValidationError as e:
                logger.warning("Classifier: dropping item %r: %s", item, e)
                result.dropped.append(DroppedItem(item=item, reason=str(e)))
                continue
            seen.add(text)
            result.pairs.append((text, quadrants))

        missing = batch - seen
        if missing:
            logger.warning("Classifier: %d task(s) got no valid classification: %s", len(missing), sorted(missing))
        logger.info("Classifier: batch done valid=%d dropped=%d", len(result.pairs), len(result.dropped))
        return result
