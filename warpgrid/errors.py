from __future__ import annotations

from typing import Any


class WarpGridError(Exception):
    """Base class for reportable errors raised by the plotting engine.

    Every error names the operation that failed and carries a context dict
    (axis index, requested limits, capacities) so the caller can decide
    whether to retry with different settings.
    """

    def __init__(self, operation: str, message: str, **context: Any) -> None:
        self.operation = operation
        self.message = message
        self.context = dict(context)
        super().__init__(self._render())

    def _render(self) -> str:
        text = f"{self.operation}: {self.message}"
        if self.context:
            details = ", ".join(f"{key}={value!r}" for key, value in sorted(self.context.items()))
            text = f"{text} ({details})"
        return text


class BreakCapacityError(WarpGridError):
    def __init__(self, operation: str, message: str, *, breaks: tuple = (), **context: Any) -> None:
        self.breaks = tuple(breaks)
        super().__init__(operation, message, **context)


class InsufficientDataError(WarpGridError):
    pass


class BackendError(WarpGridError):
    pass


class AttributeLookupError(WarpGridError, KeyError):
    def __str__(self) -> str:
        return self._render()
