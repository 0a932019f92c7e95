from .base import (
    CLASS_NAME_PROPERTY,
    PYTHON_PATH_PROPERTY,
    SCRIPT_PATH_PROPERTY,
    DeviceState,
    PyDeviceBase,
)
from .camera import PyCamera
from .generic import PyGenericDevice

__all__ = [
    "PyDeviceBase",
    "PyGenericDevice",
    "PyCamera",
    "DeviceState",
    "PYTHON_PATH_PROPERTY",
    "SCRIPT_PATH_PROPERTY",
    "CLASS_NAME_PROPERTY",
]
