# src/trimatrix/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from ..errors import InvariantViolation, ValidationError
from ..matrix.quadrants import Matrix, is_valid_key


def new_task_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class Quadrants:
    """
    One quadrant key per matrix.

    A Quadrants value is always complete: constructing one with a key outside
    its matrix's domain raises InvariantViolation.
    """

    a: str
    b: str
    c: str

    def __post_init__(self) -> None:
        for matrix, key in ((Matrix.A, self.a), (Matrix.B, self.b), (Matrix.C, self.c)):
            if not is_valid_key(matrix, key):
                raise InvariantViolation(f"invalid quadrant key for matrix {matrix.value}: {key!r}")

    def get(self, matrix: Matrix) -> str:
        if matrix is Matrix.A:
            return self.a
        if matrix is Matrix.B:
            return self.b
        return self.c

    def with_key(self, matrix: Matrix, key: str) -> Quadrants:
        if matrix is Matrix.A:
            return Quadrants(key, self.b, self.c)
        if matrix is Matrix.B:
            return Quadrants(self.a, key, self.c)
        return Quadrants(self.a, self.b, key)

    def to_dict(self) -> dict[str, str]:
        return {"A": self.a, "B": self.b, "C": self.c}

    @classmethod
    def from_dict(cls, raw: Any) -> Quadrants:
        """Parse untrusted `{A, B, C}` data (classifier output, snapshots)."""
        if not isinstance(raw, dict):
            raise ValidationError(f"quadrants must be an object, got {type(raw).__name__}")
        a, b, c = raw.get("A"), raw.get("B"), raw.get("C")
        for matrix, key in ((Matrix.A, a), (Matrix.B, b), (Matrix.C, c)):
            if not is_valid_key(matrix, key):
                raise ValidationError(f"matrix {matrix.value}: {key!r} is not a valid quadrant")
        return cls(a, b, c)

    def __str__(self) -> str:
        return f"{self.a}/{self.b}/{self.c}"


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    text: str
    quadrants: Quadrants
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        # Field order is part of the snapshot format.
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "quadrants": self.quadrants.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> Task:
        """
        Parse one snapshot item.

        Legacy snapshots may lack `completed`; it defaults to False.
        """
        if not isinstance(raw, dict):
            raise ValidationError("task must be an object")
        task_id = raw.get("id")
        text = raw.get("text")
        if not isinstance(task_id, str) or not task_id:
            raise ValidationError(f"task id must be a non-empty string, got {task_id!r}")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(f"task {task_id}: text must be a non-empty string")
        completed = raw.get("completed")
        if completed is None:
            completed = False
        if not isinstance(completed, bool):
            raise ValidationError(f"task {task_id}: completed must be true or false, got {completed!r}")
        return cls(
            id=task_id,
            text=text,
            quadrants=Quadrants.from_dict(raw.get("quadrants")),
            completed=completed,
        )


@dataclass(frozen=True, slots=True)
class Progress:
    completed: int
    total: int

    @property
    def active(self) -> int:
        return self.total - self.completed

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        # Half-up rounding, so 1 of 8 shows as 13%.
        return (self.completed * 200 + self.total) // (2 * self.total)
