from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ReportCall:
    """Record of a report for assertions in tests."""

    message: str
    is_error: bool


class FakeReporter:
    """
    In-memory Reporter for unit tests.
    """

    def __init__(self) -> None:
        self._calls: list[ReportCall] = []

    @property
    def calls(self) -> list[ReportCall]:
        """Return the recorded reports in order."""
        return list(self._calls)

    @property
    def errors(self) -> list[str]:
        return [call.message for call in self._calls if call.is_error]

    def report(self, message: str, is_error: bool) -> None:
        self._calls.append(ReportCall(message=message, is_error=is_error))

    def clear(self) -> None:
        self._calls.clear()


class BrokenReporter:
    """Reporter whose delivery always fails."""

    def __init__(self) -> None:
        self.attempts = 0

    def report(self, message: str, is_error: bool) -> None:
        self.attempts += 1
        raise OSError("log sink unavailable")
