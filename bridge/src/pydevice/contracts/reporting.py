from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable


@runtime_checkable
class Reporter(Protocol):
    """
    One-way text channel towards the host log.
    """

    def report(self, message: str, is_error: bool) -> None:
        """Deliver a message; must not raise."""
        ...


class LoggingReporter:
    """
    Reporter that forwards to a standard library logger.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("pydevice.report")

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def report(self, message: str, is_error: bool) -> None:
        if is_error:
            self._logger.error(message)
        else:
            self._logger.info(message)
