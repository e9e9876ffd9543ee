"""Cooperative cancellation for a single pipeline run.

A token is created per run and checked after every suspension point.
Cancelling never interrupts an in-flight capability call; the caller
discards that call's result and stops.
"""

from __future__ import annotations


class CancellationToken:
    """One-shot, run-scoped cancellation flag."""

    __slots__ = ("_cancelled", "reason")

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = ""

    def cancel(self, reason: str = "") -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"
