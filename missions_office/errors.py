"""Exceptions raised by the missions office store and services."""

from __future__ import annotations


class StoreError(RuntimeError):
    """A lookup, insert, or update against the database failed."""


class DuplicateRecordError(StoreError):
    """An insert or update collided with a uniqueness constraint."""


class InsufficientDataError(ValueError):
    """No individual matched and no profile was supplied to create one."""

    def __init__(self) -> None:
        super().__init__("No individual found and no data provided to create one")


class IdentityConflictError(StoreError):
    """An insert kept colliding but the surviving record could not be found."""
