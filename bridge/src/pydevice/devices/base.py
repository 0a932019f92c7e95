from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, ClassVar

from pydantic import ValidationError

from pydevice.contracts import (
    DEVICE_OK,
    ERROR_CODES,
    ERROR_TEMPLATES,
    BridgeError,
    DeviceConfig,
    ErrorKind,
    LoggingReporter,
    Reporter,
)
from pydevice.interpreter.marshal import Bridge
from pydevice.interpreter.session import InterpreterSession, default_session

PYTHON_PATH_PROPERTY = "PythonLibraryPath"
SCRIPT_PATH_PROPERTY = "ScriptPath"
CLASS_NAME_PROPERTY = "PythonClass"

_PRE_INIT_FIELDS = {
    PYTHON_PATH_PROPERTY: "python_path",
    SCRIPT_PATH_PROPERTY: "script_path",
    CLASS_NAME_PROPERTY: "class_name",
}
_FIELD_ERROR_KINDS = {
    "python_path": ErrorKind.INTERPRETER_NOT_FOUND,
    "script_path": ErrorKind.SCRIPT_NOT_FOUND,
    "class_name": ErrorKind.CLASS_NOT_FOUND,
}


class DeviceState(str, Enum):
    UNCONSTRUCTED = "unconstructed"
    SESSION_READY = "session_ready"
    OBJECT_INSTANTIATED = "object_instantiated"
    INITIALIZED = "initialized"
    SHUTTING_DOWN = "shutting_down"
    RELEASED = "released"


class PyDeviceBase:
    """
    Host-facing device whose behavior lives in a Python script.

    Construction makes no Python calls: it only fills the error-text table
    and the three pre-init properties. `initialize()` starts or joins the
    interpreter session, creates the scripted object and runs
    `initialize_device()`; on any failure `shutdown()` runs once before the
    error code is returned.
    """

    adapter_name: ClassVar[str] = "PyDeviceBase"

    def __init__(
        self,
        config: DeviceConfig | None = None,
        *,
        session: InterpreterSession | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self._logger = logging.getLogger(f"pydevice.device.{self.adapter_name}")
        self._reporter = reporter or LoggingReporter(self._logger)
        self._session = session or default_session()
        self._bridge = Bridge(
            session=self._session, reporter=self._reporter, name=self.adapter_name
        )
        self._state = DeviceState.UNCONSTRUCTED
        self.last_error: BridgeError | None = None

        self._error_texts: dict[int, str] = {}
        for kind, template in ERROR_TEMPLATES.items():
            self.set_error_text(ERROR_CODES[kind], template)

        self._pre_init: dict[str, str] = {name: "" for name in _PRE_INIT_FIELDS}
        self._init_args: dict[str, Any] = {}
        self._release_on_shutdown = False
        if config is not None:
            self.apply_config(config)

    @property
    def state(self) -> DeviceState:
        return self._state

    @property
    def bridge(self) -> Bridge:
        return self._bridge

    @property
    def session(self) -> InterpreterSession:
        return self._session

    @property
    def initialized(self) -> bool:
        return self._state is DeviceState.INITIALIZED

    def get_name(self) -> str:
        return self.adapter_name

    def set_error_text(self, code: int, text: str) -> None:
        self._error_texts[code] = text

    def get_error_text(self, code: int) -> str | None:
        return self._error_texts.get(code)

    def apply_config(self, config: DeviceConfig) -> None:
        self._ensure_not_initialized()
        for name, field_name in _PRE_INIT_FIELDS.items():
            self._pre_init[name] = getattr(config, field_name)
        self._init_args = dict(config.init_args)
        self._release_on_shutdown = config.release_interpreter_on_shutdown

    def set_pre_init_property(self, name: str, value: str) -> int:
        if name not in self._pre_init:
            raise KeyError(f"Unknown pre-init property: {name}")
        self._ensure_not_initialized()
        self._pre_init[name] = str(value)
        return DEVICE_OK

    def get_pre_init_property(self, name: str) -> str:
        return self._pre_init[name]

    def initialize(self) -> int:
        if self._state is DeviceState.INITIALIZED:
            return DEVICE_OK
        try:
            config = self._resolve_config()
            self._bridge.attach(config.python_path)
            self._state = DeviceState.SESSION_READY
            self._bridge.instantiate(config.script_path, config.class_name, config.init_args)
            self._state = DeviceState.OBJECT_INSTANTIATED
            self.initialize_device()
        except BridgeError as exc:
            self.last_error = exc
            self.shutdown()
            return exc.code
        self._state = DeviceState.INITIALIZED
        self._logger.info(
            "%s initialized (%s)", self.adapter_name, self._pre_init[CLASS_NAME_PROPERTY]
        )
        return DEVICE_OK

    def shutdown(self) -> int:
        self._state = DeviceState.SHUTTING_DOWN
        try:
            self.shutdown_device()
        finally:
            self._bridge.detach(teardown=self._release_on_shutdown)
            self._state = DeviceState.RELEASED
        return DEVICE_OK

    def get_property(self, name: str) -> tuple[int, Any]:
        """Read an attribute of the scripted object as a host value."""
        return self._invoke(self._bridge.get, name, default=None)

    def set_property(self, name: str, value: Any) -> int:
        code, _ = self._invoke(self._bridge.set, name, value)
        return code

    def initialize_device(self) -> None:
        """Hook run after the scripted object is created; raise BridgeError to fail."""

    def shutdown_device(self) -> None:
        """Hook run before the scripted object is released."""

    def _invoke(self, func: Callable[..., Any], *args: Any, default: Any = None) -> tuple[int, Any]:
        try:
            return DEVICE_OK, func(*args)
        except BridgeError as exc:
            self.last_error = exc
            return exc.code, default

    def _resolve_config(self) -> DeviceConfig:
        payload: dict[str, Any] = {
            field_name: self._pre_init[name] for name, field_name in _PRE_INIT_FIELDS.items()
        }
        payload["init_args"] = self._init_args
        payload["release_interpreter_on_shutdown"] = self._release_on_shutdown
        try:
            return DeviceConfig.model_validate(payload)
        except ValidationError as exc:
            error = exc.errors(include_url=False)[0]
            field_name = str(error["loc"][0]) if error["loc"] else ""
            detail = f"{field_name}: {error['msg']}"
            kind = _FIELD_ERROR_KINDS.get(field_name)
            if kind is None:
                self._bridge.translator.fail(
                    ErrorKind.INTERPRETER_EXCEPTION, detail, context="configuration"
                )
            self._bridge.translator.fail(kind, context=f"configuration {detail}")

    def _ensure_not_initialized(self) -> None:
        if self._state in (DeviceState.INITIALIZED, DeviceState.OBJECT_INSTANTIATED):
            raise RuntimeError("Pre-init properties cannot change on an initialized device")
