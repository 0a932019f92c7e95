from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import NoReturn

from pydevice.contracts.errors import BridgeError, ErrorKind
from pydevice.contracts.reporting import Reporter

_logger = logging.getLogger("pydevice.faults")


class FaultTranslator:
    """
    Boundary between scripted code and the host error taxonomy.

    Every fault leaving `guard()` is a BridgeError that has been reported
    exactly once through the reporter.
    """

    def __init__(self, reporter: Reporter, *, logger: logging.Logger | None = None) -> None:
        self._reporter = reporter
        self._logger = logger or _logger

    @property
    def reporter(self) -> Reporter:
        return self._reporter

    @contextmanager
    def guard(self, context: str) -> Iterator[None]:
        try:
            yield
        except BridgeError as exc:
            self._report_once(exc, context)
            raise
        except (Exception, SystemExit) as exc:
            raise self.translate(exc, context=context) from exc

    def translate(self, exc: BaseException, *, context: str | None = None) -> BridgeError:
        if isinstance(exc, BridgeError):
            self._report_once(exc, context)
            return exc

        message = _extract_message(exc)
        if message is None:
            error = BridgeError(ErrorKind.NO_DIAGNOSTIC_AVAILABLE)
        else:
            error = BridgeError(ErrorKind.INTERPRETER_EXCEPTION, message)
        error.__cause__ = exc
        self._report_once(error, context, origin=exc)
        return error

    def fail(
        self,
        kind: ErrorKind,
        detail: str | None = None,
        *,
        context: str | None = None,
    ) -> NoReturn:
        raise self.translate(BridgeError(kind, detail), context=context)

    def _report_once(
        self,
        error: BridgeError,
        context: str | None,
        *,
        origin: BaseException | None = None,
    ) -> None:
        if error.reported:
            return
        error.reported = True

        text = error.message
        if origin is not None and error.kind is ErrorKind.INTERPRETER_EXCEPTION:
            text = f"{error.template}: {type(origin).__name__}: {error.detail}"
        if context:
            text = f"{context}: {text}"

        try:
            self._reporter.report(text, True)
        except Exception:
            self._logger.warning(
                "Reporter failed while reporting %s", error.kind.value, exc_info=True
            )
        if origin is not None:
            self._logger.debug("Python traceback (%s)", context, exc_info=origin)


def _extract_message(exc: BaseException) -> str | None:
    try:
        message = str(exc)
    except Exception:
        return None
    if not isinstance(message, str):
        return None
    message = message.strip()
    return message or None
