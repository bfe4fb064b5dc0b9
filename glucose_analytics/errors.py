"""Exceptions raised by the analytics core."""
from __future__ import annotations


class InsufficientDataError(ValueError):
    """Raised when a series holds fewer readings than an analyzer needs."""

    def __init__(self, message: str, *, required: int | None = None, actual: int | None = None) -> None:
        super().__init__(message)
        self.required = required
        self.actual = actual
