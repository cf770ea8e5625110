# src/trimatrix/matrix/quadrants.py

"""
The three fixed 2x2 matrices and their quadrant domains.

Every matrix owns exactly four quadrant keys and the key sets are disjoint,
so a key alone identifies its matrix. These tables are defined once at import
time and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Matrix(StrEnum):
    A = "A"  # importance x urgency
    B = "B"  # want x required
    C = "C"  # want x can

    @classmethod
    def parse(cls, raw: str | None) -> Matrix | None:
        if not raw:
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class Quadrant:
    key: str
    title: str
    label: str


MATRIX_TITLES: dict[Matrix, str] = {
    Matrix.A: "Importance x Urgency",
    Matrix.B: "Want x Required",
    Matrix.C: "Want x Can",
}

QUADRANTS: dict[Matrix, tuple[Quadrant, ...]] = {
    Matrix.A: (
        Quadrant("Q1", "Important and urgent", "Do now"),
        Quadrant("Q2", "Important, not urgent", "Schedule"),
        Quadrant("Q3", "Urgent, not important", "Delegate"),
        Quadrant("Q4", "Neither important nor urgent", "Drop"),
    ),
    Matrix.B: (
        Quadrant("R1", "Want to x Required", "Strengths / value"),
        Quadrant("R2", "Want to x Not required", "Dreams / hobbies"),
        Quadrant("R3", "Don't want to x Required", "Duties / support requests"),
        Quadrant("R4", "Don't want to x Not required", "Candidates to cut"),
    ),
    Matrix.C: (
        Quadrant("S1", "Want to x Can", "Skills / passion"),
        Quadrant("S2", "Want to x Can't", "Challenge / learning"),
        Quadrant("S3", "Don't want to x Can", "Chores"),
        Quadrant("S4", "Don't want to x Can't", "Candidates to let go"),
    ),
}

_DOMAINS: dict[Matrix, frozenset[str]] = {
    m: frozenset(q.key for q in quads) for m, quads in QUADRANTS.items()
}

_KEY_TO_MATRIX: dict[str, Matrix] = {
    q.key: m for m, quads in QUADRANTS.items() for q in quads
}


def domain(matrix: Matrix) -> frozenset[str]:
    return _DOMAINS[matrix]


def is_valid_key(matrix: Matrix, key: object) -> bool:
    return isinstance(key, str) and key in domain(matrix)


def matrix_of(key: str) -> Matrix | None:
    """Return the matrix owning `key`, or None for an unknown key."""
    return _KEY_TO_MATRIX.get(key)


def get_quadrant(key: str) -> Quadrant | None:
    matrix = matrix_of(key)
    if matrix is None:
        return None
    for q in QUADRANTS[matrix]:
        if q.key == key:
            return q
    return None


def describe_domains() -> str:
    """One line per matrix, used to brief the classifier."""
    lines: list[str] = []
    for m in Matrix:
        cells = ", ".join(f"{q.key} ({q.title})" for q in QUADRANTS[m])
        lines.append(f"Matrix {m.value} ({MATRIX_TITLES[m]}): {cells}")
    return "\n".join(lines)
