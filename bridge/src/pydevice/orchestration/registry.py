from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from pydevice.contracts import AdapterEntry, AdapterInfo, AdapterNotFoundError, AdapterRegistry
from pydevice.devices import PyCamera, PyGenericDevice


@dataclass
class DictAdapterRegistry(AdapterRegistry):
    adapters: dict[str, AdapterEntry]

    def get(self, adapter_name: str) -> AdapterEntry:
        try:
            return self.adapters[adapter_name]
        except KeyError as e:
            raise AdapterNotFoundError(adapter_name) from e

    def list(self) -> Iterable[AdapterInfo]:
        return [entry.info for entry in self.adapters.values()]


def default_registry() -> DictAdapterRegistry:
    entries = [
        AdapterEntry(
            info=AdapterInfo(
                name=PyGenericDevice.adapter_name,
                description="Generic device implemented in Python",
            ),
            factory=PyGenericDevice,
        ),
        AdapterEntry(
            info=AdapterInfo(
                name=PyCamera.adapter_name,
                description="Camera implemented in Python",
            ),
            factory=PyCamera,
        ),
    ]
    return DictAdapterRegistry(adapters={entry.info.name: entry for entry in entries})
