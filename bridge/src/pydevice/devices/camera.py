from __future__ import annotations

from pydevice.contracts import DEVICE_OK
from pydevice.devices.base import PyDeviceBase

REQUIRED_ATTRIBUTES = (
    "width",
    "height",
    "top",
    "left",
    "exposure_ms",
    "binning",
    "trigger",
    "read",
)
REQUIRED_METHODS = ("trigger", "read")
DEFAULT_BYTES_PER_PIXEL = 2


class PyCamera(PyDeviceBase):
    """
    Camera implemented by a Python class.

    The scripted object exposes `width`, `height`, `top`, `left`,
    `exposure_ms` and `binning` attributes plus `trigger()` and `read()`
    methods; `read()` returns the frame as a 2-D unsigned integer array.
    Optional: `wait()`, `bit_depth`, `bytes_per_pixel`, `clear_roi()`,
    `sensor_width` and `sensor_height`.

    The frame returned by the last successful `snap_image()` stays alive
    until the next snap or shutdown, so the view handed out by
    `get_image_buffer()` is valid for that window.
    """

    adapter_name = "PyCamera"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._has_wait = False

    def initialize_device(self) -> None:
        self._bridge.require(REQUIRED_ATTRIBUTES, callables=REQUIRED_METHODS)
        self._has_wait = self._bridge.has("wait")

    def shutdown_device(self) -> None:
        self._bridge.clear_pending()
        self._has_wait = False

    def snap_image(self) -> int:
        code, _ = self._invoke(self._snap)
        return code

    def _snap(self) -> None:
        self._bridge.clear_pending()
        self._bridge.call("trigger")
        if self._has_wait:
            self._bridge.call("wait")
        self._bridge.capture("read")

    def get_image_buffer(self) -> memoryview | None:
        return self._bridge.pending.view()

    def get_image_width(self) -> int:
        _, width = self._invoke(self._bridge.get, "width", int, default=0)
        return width

    def get_image_height(self) -> int:
        _, height = self._invoke(self._bridge.get, "height", int, default=0)
        return height

    def get_image_bytes_per_pixel(self) -> int:
        frame = self._bridge.pending.array
        if frame is not None:
            return frame.dtype.itemsize
        _, value = self._invoke(
            self._bridge.get_optional, "bytes_per_pixel", int, DEFAULT_BYTES_PER_PIXEL, default=0
        )
        return value

    def get_bit_depth(self) -> int:
        fallback = 8 * self.get_image_bytes_per_pixel()
        _, value = self._invoke(self._bridge.get_optional, "bit_depth", int, fallback, default=0)
        return value

    def get_image_buffer_size(self) -> int:
        frame = self._bridge.pending.array
        if frame is not None:
            return frame.nbytes
        return self.get_image_width() * self.get_image_height() * self.get_image_bytes_per_pixel()

    def set_roi(self, x: int, y: int, x_size: int, y_size: int) -> int:
        code, _ = self._invoke(self._set_roi, x, y, x_size, y_size)
        return code

    def _set_roi(self, x: int, y: int, x_size: int, y_size: int) -> None:
        self._bridge.set("left", int(x))
        self._bridge.set("top", int(y))
        self._bridge.set("width", int(x_size))
        self._bridge.set("height", int(y_size))

    def get_roi(self) -> tuple[int, tuple[int, int, int, int]]:
        return self._invoke(self._get_roi, default=(0, 0, 0, 0))

    def _get_roi(self) -> tuple[int, int, int, int]:
        return (
            self._bridge.get("left", int),
            self._bridge.get("top", int),
            self._bridge.get("width", int),
            self._bridge.get("height", int),
        )

    def clear_roi(self) -> int:
        code, _ = self._invoke(self._clear_roi)
        return code

    def _clear_roi(self) -> None:
        if self._bridge.has("clear_roi"):
            self._bridge.call("clear_roi")
            return
        sensor_width = self._bridge.get("sensor_width", int)
        sensor_height = self._bridge.get("sensor_height", int)
        self._set_roi(0, 0, sensor_width, sensor_height)

    def get_exposure(self) -> float:
        _, value = self._invoke(self._bridge.get, "exposure_ms", float, default=0.0)
        return value

    def set_exposure(self, exposure_ms: float) -> None:
        self._invoke(self._bridge.set, "exposure_ms", float(exposure_ms))

    def get_binning(self) -> int:
        _, value = self._invoke(self._bridge.get, "binning", int, default=0)
        return value

    def set_binning(self, binning: int) -> int:
        code, _ = self._invoke(self._bridge.set, "binning", int(binning))
        return code

    def is_exposure_sequenceable(self) -> tuple[int, bool]:
        return DEVICE_OK, False
