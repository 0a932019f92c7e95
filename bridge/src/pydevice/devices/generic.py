from __future__ import annotations

from pydevice.devices.base import PyDeviceBase


class PyGenericDevice(PyDeviceBase):
    """A generic device implemented by a Python class."""

    adapter_name = "PyDevice"

    def busy(self) -> bool:
        return False
