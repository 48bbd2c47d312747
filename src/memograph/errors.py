"""Error taxonomy for the memory graph engine."""

from typing import Any


class MemographError(Exception):
    """Base class for all memograph errors."""


class ValidationError(MemographError):
    """Malformed input to the model.

    Batch operations collect these per offending item and keep going;
    single-item operations raise them.
    """

    def __init__(self, message: str, item: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.item = item

    def __str__(self) -> str:
        if self.item is None:
            return self.message
        return f"{self.message}: {self.item!r}"


class StaleRequestError(MemographError):
    """A data fetch superseded by a newer one. Never surfaced to the UI."""

    def __init__(self, generation: int, current: int) -> None:
        super().__init__(f"Request generation {generation} superseded by {current}")
        self.generation = generation
        self.current = current


class AdapterError(MemographError):
    """Failure reported by the repository adapter (network, permission, ...)."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class NotFoundError(AdapterError):
    """The adapter could not find the requested record."""
