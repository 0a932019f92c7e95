import threading

import numpy as np
import pytest

from pydevice.contracts import DEVICE_OK, ERROR_CODES, DeviceConfig, ErrorKind
from pydevice.devices import (
    CLASS_NAME_PROPERTY,
    SCRIPT_PATH_PROPERTY,
    DeviceState,
    PyCamera,
    PyGenericDevice,
)
from pydevice.testkit import write_script

CAMERA_SOURCE = """
import numpy as np


class Camera:
    def __init__(self, width=8, height=4):
        self.width = width
        self.height = height
        self.top = 0
        self.left = 0
        self.binning = 1
        self.sensor_width = 16
        self.sensor_height = 8
        self._exposure_ms = 5.0
        self.frames = 0
        self.last_frame = None

    @property
    def exposure_ms(self):
        return self._exposure_ms

    @exposure_ms.setter
    def exposure_ms(self, value):
        if value <= 0:
            raise ValueError("exposure must be positive")
        self._exposure_ms = value

    def trigger(self):
        self.frames += 1

    def read(self):
        self.last_frame = np.full((self.height, self.width), self.frames, dtype=np.uint16)
        return self.last_frame
"""

GENERIC_SOURCE = """
class Shutter:
    def __init__(self, is_open=False):
        self.is_open = is_open
        self.name = "shutter"
"""


class _CountingShutdownDevice(PyGenericDevice):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.shutdown_calls = 0

    def shutdown(self) -> int:
        self.shutdown_calls += 1
        return super().shutdown()


class _CountingShutdownCamera(PyCamera):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.shutdown_calls = 0

    def shutdown(self) -> int:
        self.shutdown_calls += 1
        return super().shutdown()


def _camera(session, reporter, tmp_path, source=CAMERA_SOURCE, cls=PyCamera, **init_args):
    script = write_script(tmp_path, source, name="camera_script.py")
    config = DeviceConfig(script_path=str(script), class_name="Camera", init_args=init_args)
    return cls(config, session=session, reporter=reporter)


def test_construction_makes_no_python_calls(session, reporter, tmp_path):
    camera = _camera(session, reporter, tmp_path)

    assert camera.state is DeviceState.UNCONSTRUCTED
    assert camera.get_name() == "PyCamera"
    assert camera.get_error_text(ERROR_CODES[ErrorKind.CLASS_NOT_FOUND]).startswith(
        "Could not find a class definition"
    )
    assert session.is_initialized is False
    assert session.ledger.increments == 0


def test_generic_device_lifecycle(session, reporter, tmp_path):
    script = write_script(tmp_path, GENERIC_SOURCE)
    device = PyGenericDevice(session=session, reporter=reporter)
    device.set_pre_init_property(SCRIPT_PATH_PROPERTY, str(script))
    device.set_pre_init_property(CLASS_NAME_PROPERTY, "Shutter")

    assert device.initialize() == DEVICE_OK
    assert device.state is DeviceState.INITIALIZED
    assert device.busy() is False
    assert device.get_property("name") == (DEVICE_OK, "shutter")
    assert device.set_property("is_open", True) == DEVICE_OK
    assert device.get_property("is_open") == (DEVICE_OK, True)
    with pytest.raises(RuntimeError):
        device.set_pre_init_property(CLASS_NAME_PROPERTY, "Other")

    assert device.shutdown() == DEVICE_OK
    assert device.state is DeviceState.RELEASED
    assert session.live_devices == 0
    assert session.ledger.balanced()
    assert reporter.errors == []


def test_unknown_pre_init_property_is_rejected(session, reporter):
    device = PyGenericDevice(session=session, reporter=reporter)

    with pytest.raises(KeyError):
        device.set_pre_init_property("Port", "COM1")


def test_missing_property_read_returns_code(session, reporter, tmp_path):
    script = write_script(tmp_path, GENERIC_SOURCE)
    device = PyGenericDevice(
        DeviceConfig(script_path=str(script), class_name="Shutter"),
        session=session,
        reporter=reporter,
    )
    device.initialize()

    code, value = device.get_property("position")

    assert code == ERROR_CODES[ErrorKind.REQUIRED_PROPERTY_MISSING]
    assert value is None
    assert device.last_error.detail == "position"
    assert len(reporter.errors) == 1
    device.shutdown()


def test_missing_script_fails_initialize_and_shuts_down_once(session, reporter, tmp_path):
    device = _CountingShutdownDevice(
        DeviceConfig(script_path=str(tmp_path / "absent.py"), class_name="Shutter"),
        session=session,
        reporter=reporter,
    )

    code = device.initialize()

    assert code == ERROR_CODES[ErrorKind.SCRIPT_NOT_FOUND]
    assert device.shutdown_calls == 1
    assert device.state is DeviceState.RELEASED
    assert session.ledger.increments == 0
    assert session.live_devices == 0
    assert len(reporter.errors) == 1


def test_empty_pre_init_settings_fail_before_python_runs(session, reporter):
    device = _CountingShutdownDevice(session=session, reporter=reporter)

    code = device.initialize()

    assert code == ERROR_CODES[ErrorKind.SCRIPT_NOT_FOUND]
    assert device.shutdown_calls == 1
    assert session.is_initialized is False
    assert len(reporter.errors) == 1


def test_missing_class_fails_initialize(session, reporter, tmp_path):
    script = write_script(tmp_path, GENERIC_SOURCE)
    device = _CountingShutdownDevice(
        DeviceConfig(script_path=str(script), class_name="Missing"),
        session=session,
        reporter=reporter,
    )

    assert device.initialize() == ERROR_CODES[ErrorKind.CLASS_NOT_FOUND]
    assert device.shutdown_calls == 1


def test_constructor_exception_fails_initialize(session, reporter, tmp_path):
    camera = _camera(
        session,
        reporter,
        tmp_path,
        source="class Camera:\n    def __init__(self):\n        raise RuntimeError('no camera')\n",
        cls=_CountingShutdownCamera,
    )

    assert camera.initialize() == ERROR_CODES[ErrorKind.INTERPRETER_EXCEPTION]
    assert camera.last_error.detail == "no camera"
    assert camera.shutdown_calls == 1
    assert session.ledger.balanced()


def test_camera_missing_required_property_fails_before_snapping(session, reporter, tmp_path):
    source = CAMERA_SOURCE.replace("self.binning = 1", "pass")
    camera = _camera(session, reporter, tmp_path, source=source, cls=_CountingShutdownCamera)

    code = camera.initialize()

    assert code == ERROR_CODES[ErrorKind.REQUIRED_PROPERTY_MISSING]
    assert camera.last_error.detail == "binning"
    assert camera.shutdown_calls == 1
    assert camera.bridge.pending.handle is None
    assert session.ledger.balanced()
    assert len(reporter.errors) == 1


DELEGATING_CAMERA_SOURCE = """
import numpy as np


class _Sensor:
    def __init__(self, width, height):
        self.width = width
        self.height = height
        self.top = 0
        self.left = 0
        self.binning = 1
        self.exposure_ms = 5.0
        self.frames = 0

    def trigger(self):
        self.frames += 1

    def read(self):
        return np.full((self.height, self.width), self.frames, dtype=np.uint16)


class Camera:
    def __init__(self, width=8, height=4):
        self._sensor = _Sensor(width, height)

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._sensor, name)
"""


def test_camera_delegating_through_getattr_initializes_and_snaps(session, reporter, tmp_path):
    camera = _camera(session, reporter, tmp_path, source=DELEGATING_CAMERA_SOURCE, width=6)

    assert camera.initialize() == DEVICE_OK
    assert camera.snap_image() == DEVICE_OK

    frame = np.asarray(camera.get_image_buffer())
    assert frame.shape == (4, 6)
    assert set(np.unique(frame).tolist()) == {1}
    assert camera.get_image_width() == 6
    assert reporter.errors == []
    camera.shutdown()
    assert session.ledger.balanced()


def test_repeated_snaps_keep_exactly_one_pending_buffer(session, reporter, tmp_path):
    camera = _camera(session, reporter, tmp_path)
    assert camera.initialize() == DEVICE_OK
    scripted = camera.bridge.object.value

    for expected in range(1, 6):
        assert camera.snap_image() == DEVICE_OK
        pending = camera.bridge.pending.handle
        assert pending.value is scripted.last_frame
        assert pending.refcount == 1
        # the scripted camera and the pending frame
        assert session.ledger.live_count() == 2
        frame = np.asarray(camera.get_image_buffer())
        assert frame.dtype == np.uint16
        assert set(np.unique(frame).tolist()) == {expected}

    camera.shutdown()
    assert session.ledger.balanced()


def test_failed_snap_leaves_no_pending_buffer(session, reporter, tmp_path):
    source = CAMERA_SOURCE.replace(
        "self.last_frame = np.full", "self.last_frame = None if self.frames > 1 else np.full"
    )
    camera = _camera(session, reporter, tmp_path, source=source)
    camera.initialize()

    assert camera.snap_image() == DEVICE_OK
    assert camera.snap_image() == ERROR_CODES[ErrorKind.INTERPRETER_EXCEPTION]

    assert camera.bridge.pending.handle is None
    assert camera.get_image_buffer() is None
    assert session.ledger.live_count() == 1
    camera.shutdown()


def test_camera_geometry_and_settings(session, reporter, tmp_path):
    camera = _camera(session, reporter, tmp_path, width=6, height=3)
    camera.initialize()

    assert camera.get_image_width() == 6
    assert camera.get_image_height() == 3
    assert camera.get_image_bytes_per_pixel() == 2
    assert camera.get_bit_depth() == 16
    assert camera.get_image_buffer_size() == 36
    camera.snap_image()
    assert camera.get_image_buffer_size() == 36

    camera.set_exposure(12.5)
    assert camera.get_exposure() == 12.5
    assert camera.set_binning(2) == DEVICE_OK
    assert camera.get_binning() == 2
    assert camera.is_exposure_sequenceable() == (DEVICE_OK, False)
    assert reporter.errors == []
    camera.shutdown()


def test_camera_roi(session, reporter, tmp_path):
    camera = _camera(session, reporter, tmp_path)
    camera.initialize()

    assert camera.set_roi(2, 1, 4, 2) == DEVICE_OK
    assert camera.get_roi() == (DEVICE_OK, (2, 1, 4, 2))
    assert camera.clear_roi() == DEVICE_OK
    assert camera.get_roi() == (DEVICE_OK, (0, 0, 16, 8))
    camera.shutdown()


def test_rejected_exposure_is_reported(session, reporter, tmp_path):
    camera = _camera(session, reporter, tmp_path)
    camera.initialize()

    camera.set_exposure(-1.0)

    assert camera.get_exposure() == 5.0
    assert camera.last_error.kind is ErrorKind.INTERPRETER_EXCEPTION
    assert camera.last_error.detail == "exposure must be positive"
    assert len(reporter.errors) == 1
    camera.shutdown()


def test_getter_fault_returns_fallback(session, reporter, tmp_path):
    source = CAMERA_SOURCE.replace("self.width = width", "self.width = str(width)")
    camera = _camera(session, reporter, tmp_path, source=source)
    camera.initialize()

    assert camera.get_image_width() == 0
    assert camera.last_error.kind is ErrorKind.INTERPRETER_EXCEPTION
    camera.shutdown()


def test_operations_after_shutdown_do_not_crash(session, reporter, tmp_path):
    camera = _camera(session, reporter, tmp_path)
    camera.initialize()
    camera.shutdown()

    assert camera.snap_image() == ERROR_CODES[ErrorKind.REQUIRED_PROPERTY_MISSING]
    assert camera.get_exposure() == 0.0


def test_devices_share_the_script_and_session(session, reporter, tmp_path):
    first = _camera(session, reporter, tmp_path)
    second = _camera(session, reporter, tmp_path)

    assert first.initialize() == DEVICE_OK
    assert second.initialize() == DEVICE_OK
    assert session.live_devices == 2
    assert len(session.loaded_scripts) == 1
    assert first.bridge.object.value is not second.bridge.object.value

    first.shutdown()
    assert session.live_devices == 1
    second.shutdown()
    assert session.is_initialized


def test_second_device_with_other_library_path_fails(session, reporter, tmp_path):
    other = tmp_path / "other"
    other.mkdir()
    first = _camera(session, reporter, tmp_path)
    config = DeviceConfig(
        python_path=str(other),
        script_path=str(tmp_path / "camera_script.py"),
        class_name="Camera",
    )
    second = _CountingShutdownCamera(config, session=session, reporter=reporter)

    assert first.initialize() == DEVICE_OK
    assert second.initialize() == ERROR_CODES[ErrorKind.LIBRARY_PATH_CONFLICT]
    assert second.shutdown_calls == 1
    assert session.live_devices == 1
    assert first.snap_image() == DEVICE_OK
    first.shutdown()


def test_release_on_shutdown_tears_down_idle_session(session, reporter, tmp_path):
    script = write_script(tmp_path, GENERIC_SOURCE)
    device = PyGenericDevice(
        DeviceConfig(
            script_path=str(script),
            class_name="Shutter",
            release_interpreter_on_shutdown=True,
        ),
        session=session,
        reporter=reporter,
    )

    device.initialize()
    device.shutdown()

    assert session.is_initialized is False
    assert session.loaded_scripts == []


def test_concurrent_devices_serialize_through_the_session_lock(session, reporter, tmp_path):
    cameras = [_camera(session, reporter, tmp_path) for _ in range(3)]
    for camera in cameras:
        assert camera.initialize() == DEVICE_OK
    codes: list[int] = []

    def _snap_many(camera: PyCamera) -> None:
        for _ in range(25):
            codes.append(camera.snap_image())

    threads = [threading.Thread(target=_snap_many, args=(camera,)) for camera in cameras]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert codes == [DEVICE_OK] * 75
    for camera in cameras:
        camera.shutdown()
    assert session.ledger.balanced()
