# src/routine_keeper/core/errors.py

"""
Error taxonomy shared by the core and the list API.

- ValidationError / NotFoundError / PermissionDeniedError / AlreadyExistsError
  are raised synchronously before any state is mutated.
- StoreError wraps backend failures; ConflictError marks a concurrent write on a
  single task. Both are retryable by the caller; nothing here retries by itself.
"""

from __future__ import annotations


class RoutineError(Exception):
    """Base class for all errors raised by routine_keeper."""


class ValidationError(RoutineError, ValueError):
    pass


class NotFoundError(RoutineError, LookupError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(RoutineError):
    pass


class AlreadyExistsError(RoutineError):
    pass


class StoreError(RoutineError):
    retryable = True


class ConflictError(StoreError):
    """The row changed between read and write (toggle raced a sweep or another toggle)."""
