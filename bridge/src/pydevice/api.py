from __future__ import annotations

from pathlib import Path

from pydevice.configuration import load_device_file
from pydevice.contracts import AdapterRegistry, DeviceConfig, Reporter
from pydevice.devices import PyDeviceBase
from pydevice.interpreter.session import InterpreterSession
from pydevice.orchestration.registry import default_registry


def create_device(
    adapter_name: str,
    config: DeviceConfig | None = None,
    *,
    registry: AdapterRegistry | None = None,
    session: InterpreterSession | None = None,
    reporter: Reporter | None = None,
) -> PyDeviceBase:
    """Construct a device by adapter name; no Python code runs until initialize()."""
    entry = (registry or default_registry()).get(adapter_name)
    return entry.factory(config, session=session, reporter=reporter)


def open_from_yaml(
    path: str | Path,
    *,
    registry: AdapterRegistry | None = None,
    session: InterpreterSession | None = None,
    reporter: Reporter | None = None,
) -> PyDeviceBase:
    device_file = load_device_file(path)
    return create_device(
        device_file.adapter,
        device_file.device,
        registry=registry,
        session=session,
        reporter=reporter,
    )
