from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import numpy as np

from pydevice.contracts.errors import BridgeError, ErrorKind
from pydevice.contracts.reporting import Reporter
from pydevice.interpreter.faults import FaultTranslator
from pydevice.interpreter.handle import ManagedObject

if TYPE_CHECKING:
    from pydevice.interpreter.session import InterpreterSession

_logger = logging.getLogger("pydevice.marshal")

_SUPPORTED_PIXEL_SIZES = (1, 2, 4)


def to_interpreter(value: Any, *, name: str = "value") -> Any:
    """Convert a host value into a value passed to scripted code."""
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (tuple, list)):
        items = tuple(value)
        for item in items:
            if isinstance(item, bool) or not isinstance(item, (int, float)):
                raise TypeError(f"{name}: tuples may only hold numbers, got {type(item).__name__}")
        return items
    if isinstance(value, (np.ndarray, memoryview, bytes, bytearray)):
        return value
    raise TypeError(f"{name}: cannot pass {type(value).__name__} to Python code")


def to_interpreter_kwargs(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: to_interpreter(item, name=key) for key, item in values.items()}


def from_interpreter(value: Any, expected: type | None, *, name: str = "value") -> Any:
    """
    Convert a scripted value to a host type.

    `expected=None` accepts any primitive (bool, int, float, str, tuple of
    numbers). Mismatches raise TypeError; nothing is coerced silently.
    """
    if expected is None:
        return _primitive(value, name=name)
    if expected is bool:
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
    elif expected is int:
        if _is_integer(value):
            return int(value)
    elif expected is float:
        if _is_integer(value) or isinstance(value, (float, np.floating)):
            return float(value)
    elif expected is str:
        if isinstance(value, str):
            return value
    else:
        raise TypeError(f"{name}: unsupported host type {expected.__name__}")
    raise TypeError(f"{name}: expected {expected.__name__}, got {type(value).__name__}")


def _is_integer(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return False
    return isinstance(value, (int, np.integer))


def _primitive(value: Any, *, name: str) -> Any:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if _is_integer(value):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (tuple, list)):
        return tuple(_primitive(item, name=name) for item in value)
    raise TypeError(f"{name}: {type(value).__name__} is not a host-compatible value")


class PendingBuffer:
    """
    The last captured frame, held for the host's synchronous read.

    At most one frame is held at a time; `hold()` always releases the prior
    one first.
    """

    def __init__(self) -> None:
        self._handle: ManagedObject | None = None
        self._array: np.ndarray | None = None

    @property
    def handle(self) -> ManagedObject | None:
        return self._handle

    @property
    def array(self) -> np.ndarray | None:
        return self._array

    def hold(self, handle: ManagedObject) -> None:
        self.clear()
        array = np.asarray(handle.value)
        if array.ndim != 2:
            raise TypeError(f"image must be 2-dimensional, got shape {array.shape}")
        if array.dtype.kind != "u" or array.dtype.itemsize not in _SUPPORTED_PIXEL_SIZES:
            raise TypeError(f"image must hold 8, 16 or 32 bit unsigned pixels, got {array.dtype}")
        if not array.flags.c_contiguous:
            _logger.debug("Copying non-contiguous image of shape %s", array.shape)
            array = np.ascontiguousarray(array)
        self._handle = handle
        self._array = array

    def clear(self) -> None:
        handle, self._handle = self._handle, None
        self._array = None
        if handle is not None:
            handle.release()

    def view(self) -> memoryview | None:
        if self._array is None:
            return None
        return memoryview(self._array).toreadonly()


class Bridge:
    """
    Call/marshal layer bound to one scripted device object.

    Every entry into scripted code holds the session lock and runs inside
    the fault translator.
    """

    def __init__(
        self,
        *,
        session: InterpreterSession,
        reporter: Reporter,
        name: str = "device",
    ) -> None:
        self._session = session
        self._translator = FaultTranslator(reporter)
        self._name = name
        self._object = ManagedObject.empty(ledger=session.ledger, name=name)
        self._pending = PendingBuffer()
        self._attached = False

    @property
    def session(self) -> InterpreterSession:
        return self._session

    @property
    def translator(self) -> FaultTranslator:
        return self._translator

    @property
    def object(self) -> ManagedObject:
        return self._object

    @property
    def pending(self) -> PendingBuffer:
        return self._pending

    @property
    def is_attached(self) -> bool:
        return self._attached

    @contextmanager
    def guarded(self, context: str) -> Iterator[None]:
        with self._session.lock, self._translator.guard(context):
            yield

    def attach(self, python_path: str) -> None:
        """Join (or start) the interpreter session."""
        if self._attached:
            return
        self._session.ensure(python_path, translator=self._translator)
        self._attached = True

    def instantiate(
        self, script_path: str, class_name: str, init_args: Mapping[str, Any] | None = None
    ) -> None:
        """Load the script class and bind a new instance of it."""
        with self._session.load_class(
            script_path, class_name, translator=self._translator
        ) as class_ref:
            instance = self._session.instantiate(
                class_ref, init_args or {}, translator=self._translator
            )
        self._object.release()
        self._object = instance
        self._name = class_name

    def detach(self, *, teardown: bool = False) -> None:
        """Drop the pending frame and the device object, then leave the session."""
        with self._session.lock:
            self._pending.clear()
            self._object.release()
            self._object = ManagedObject.empty(ledger=self._session.ledger, name=self._name)
            if self._attached:
                self._attached = False
                self._session.release(teardown=teardown)

    def has(self, name: str) -> bool:
        with self.guarded(f"{self._name}.{name}"):
            return self._object.has_attribute(name)

    def require(self, names: Iterable[str], *, callables: Iterable[str] = ()) -> None:
        """Check the bound object exposes every name; stops at the first missing one."""
        callable_names = set(callables)
        for name in names:
            with self.guarded(f"checking {self._name}.{name}"):
                if not self._object.has_attribute(name):
                    raise BridgeError(ErrorKind.REQUIRED_PROPERTY_MISSING, name)
                if name in callable_names:
                    with self._object.get_attribute(name) as attribute:
                        if not callable(attribute.value):
                            raise BridgeError(ErrorKind.REQUIRED_PROPERTY_MISSING, name)

    def get(self, name: str, expected: type | None = None) -> Any:
        with self.guarded(f"reading {self._name}.{name}"):
            with self._object.get_attribute(name) as attribute:
                return from_interpreter(attribute.value, expected, name=name)

    def get_optional(self, name: str, expected: type | None, default: Any) -> Any:
        with self.guarded(f"reading {self._name}.{name}"):
            with self._object.get_attribute(name, required=False) as attribute:
                if attribute.is_empty:
                    return default
                return from_interpreter(attribute.value, expected, name=name)

    def set(self, name: str, value: Any) -> None:
        with self.guarded(f"writing {self._name}.{name}"):
            self._object.set_attribute(name, to_interpreter(value, name=name))

    def call(self, name: str, *args: Any, expected: type | None = None) -> Any:
        """Call a method; the result is discarded unless `expected` is given."""
        with self.guarded(f"calling {self._name}.{name}"):
            converted = [to_interpreter(arg, name=name) for arg in args]
            with self._object.call_attribute(name, *converted) as result:
                if expected is None:
                    return None
                return from_interpreter(result.value, expected, name=name)

    def capture(self, name: str) -> np.ndarray:
        """Call a frame-producing method and hold its result as the pending buffer."""
        with self.guarded(f"calling {self._name}.{name}"):
            self._pending.clear()
            handle = self._object.call_attribute(name)
            try:
                self._pending.hold(handle)
            except Exception:
                handle.release()
                raise
            return self._pending.array

    def clear_pending(self) -> None:
        with self._session.lock:
            self._pending.clear()
