from __future__ import annotations

import threading
from typing import Any

from pydevice.contracts.errors import BridgeError, ErrorKind


class ReferenceLedger:
    """
    Interpreter-side reference counts for values held by the host.

    A value stays strongly referenced here while its count is above zero, so
    the interpreter cannot reclaim it while any host-side holder exists.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counts: dict[int, int] = {}
        self._values: dict[int, Any] = {}
        self.increments = 0
        self.decrements = 0

    def incref(self, value: Any) -> None:
        key = id(value)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            self._values[key] = value
            self.increments += 1

    def decref(self, value: Any) -> None:
        key = id(value)
        with self._lock:
            count = self._counts.get(key, 0)
            if count <= 0:
                raise RuntimeError(f"decref of untracked value {type(value).__name__}")
            self.decrements += 1
            if count == 1:
                del self._counts[key]
                del self._values[key]
            else:
                self._counts[key] = count - 1

    def count(self, value: Any) -> int:
        with self._lock:
            return self._counts.get(id(value), 0)

    def live_count(self) -> int:
        """Number of distinct values currently held."""
        with self._lock:
            return len(self._counts)

    def balanced(self) -> bool:
        with self._lock:
            return self.increments == self.decrements and not self._counts


class ManagedObject:
    """
    Counted handle to a value living in the interpreter session.

    Every instance is one holder. `share()`, `copy.copy` and `copy.deepcopy`
    all produce a new holder of the same value; the value is released once
    the last holder is released or collected.
    """

    __slots__ = ("_value", "_ledger", "_name", "_held")

    def __init__(self, value: Any, *, ledger: ReferenceLedger, name: str | None = None) -> None:
        self._value = value
        self._ledger = ledger
        self._name = name
        self._held = False
        ledger.incref(value)
        self._held = True

    @classmethod
    def empty(cls, *, ledger: ReferenceLedger, name: str | None = None) -> ManagedObject:
        handle = cls.__new__(cls)
        handle._value = None
        handle._ledger = ledger
        handle._name = name
        handle._held = False
        return handle

    @property
    def name(self) -> str:
        return self._name or "<python object>"

    @property
    def is_empty(self) -> bool:
        return not self._held

    @property
    def value(self) -> Any:
        if not self._held:
            raise BridgeError(ErrorKind.REQUIRED_PROPERTY_MISSING, self.name)
        return self._value

    @property
    def refcount(self) -> int:
        if not self._held:
            return 0
        return self._ledger.count(self._value)

    def share(self) -> ManagedObject:
        if not self._held:
            return ManagedObject.empty(ledger=self._ledger, name=self._name)
        return ManagedObject(self._value, ledger=self._ledger, name=self._name)

    def __copy__(self) -> ManagedObject:
        return self.share()

    def __deepcopy__(self, memo: dict[int, Any]) -> ManagedObject:
        return self.share()

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        value, self._value = self._value, None
        self._ledger.decref(value)

    def __enter__(self) -> ManagedObject:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __del__(self) -> None:
        try:
            self.release()
        except Exception:
            pass

    def __repr__(self) -> str:
        state = "empty" if self.is_empty else f"refcount={self.refcount}"
        return f"ManagedObject({self.name}, {state})"

    def has_attribute(self, name: str) -> bool:
        if not self._held:
            return False
        try:
            getattr(self._value, name)
        except AttributeError:
            return False
        return True

    def get_attribute(self, name: str, *, required: bool = True) -> ManagedObject:
        """
        Read an attribute into a new holder.

        A missing attribute is REQUIRED_PROPERTY_MISSING, or an empty handle
        when `required` is False. Errors raised while computing the attribute
        propagate unchanged.
        """
        value = self.value
        qualified = f"{self.name}.{name}"
        try:
            result = getattr(value, name)
        except AttributeError:
            if _is_declared(value, name):
                raise
            if required:
                raise BridgeError(ErrorKind.REQUIRED_PROPERTY_MISSING, name) from None
            return ManagedObject.empty(ledger=self._ledger, name=qualified)
        return ManagedObject(result, ledger=self._ledger, name=qualified)

    def set_attribute(self, name: str, value: Any) -> None:
        setattr(self.value, name, value)

    def call(self, *args: Any, **kwargs: Any) -> ManagedObject:
        result = self.value(*args, **kwargs)
        return ManagedObject(result, ledger=self._ledger, name=f"{self.name}()")

    def call_attribute(self, name: str, *args: Any, **kwargs: Any) -> ManagedObject:
        with self.get_attribute(name) as attribute:
            return attribute.call(*args, **kwargs)


def _is_declared(value: Any, name: str) -> bool:
    try:
        return name in dir(value)
    except Exception:
        return False
