from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


class AdapterNotFoundError(KeyError):
    pass


@dataclass(frozen=True, slots=True)
class AdapterInfo:
    name: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class AdapterEntry:
    info: AdapterInfo
    factory: Callable[..., Any]


@runtime_checkable
class AdapterRegistry(Protocol):
    def get(self, adapter_name: str) -> AdapterEntry:
        """Return the entry for a name or raise AdapterNotFoundError."""
        ...

    def list(self) -> Iterable[AdapterInfo]:
        """List available adapters."""
        ...
