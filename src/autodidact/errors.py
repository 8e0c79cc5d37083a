"""Failure taxonomy for the acquisition and deployment pipeline."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import aiosqlite


class AutodidactError(Exception):
    """Base class for pipeline failures."""

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class FetchFailure(AutodidactError):
    """A single source could not be loaded or yielded no text."""


class ValidationFailure(AutodidactError):
    """A candidate program is missing required markers."""


class TestFailure(AutodidactError):
    """A candidate program failed its isolated run or restricted evaluation."""

    __test__ = False  # not a pytest test class


class RestartFailure(AutodidactError):
    """The process supervisor could not restart the running system."""


class StorageUnavailable(AutodidactError):
    """The knowledge database rejected or failed an operation."""


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise database errors raised inside the block as StorageUnavailable."""
    try:
        yield
    except aiosqlite.Error as exc:
        raise StorageUnavailable(f"{operation} failed: {exc}") from exc
