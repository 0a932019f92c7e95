from .adapters import AdapterEntry, AdapterInfo, AdapterNotFoundError, AdapterRegistry
from .device_config import DeviceConfig, DeviceFile
from .errors import (
    DEVICE_OK,
    ERROR_CODES,
    ERROR_TEMPLATES,
    BridgeError,
    ErrorKind,
)
from .reporting import LoggingReporter, Reporter

__all__ = [
    "DEVICE_OK",
    "ERROR_CODES",
    "ERROR_TEMPLATES",
    "BridgeError",
    "ErrorKind",
    "DeviceConfig",
    "DeviceFile",
    "Reporter",
    "LoggingReporter",
    "AdapterEntry",
    "AdapterInfo",
    "AdapterRegistry",
    "AdapterNotFoundError",
]
