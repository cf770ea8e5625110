# src/trimatrix/errors.py

"""
Error taxonomy.

- ValidationError: one classifier item (or a manual move) failed a domain check.
- TransportError: a whole external call failed; the batch is abandoned.
- PersistenceError: a snapshot slot could not be read or written.
- InvariantViolation: something tried to store a task without a full triple.
  This is a programming fault, never a recoverable runtime condition.
"""

from __future__ import annotations


class TriMatrixError(Exception):
    """Base class for all trimatrix errors."""


class ValidationError(TriMatrixError):
    pass


class TransportError(TriMatrixError):
    pass


class PersistenceError(TriMatrixError):
    pass


class InvariantViolation(TriMatrixError):
    pass
