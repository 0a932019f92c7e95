from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
import threading
from collections.abc import Mapping
from pathlib import Path
from types import ModuleType
from typing import Any

from pydevice.configuration import stable_hash
from pydevice.contracts.errors import ErrorKind
from pydevice.contracts.reporting import LoggingReporter
from pydevice.interpreter.faults import FaultTranslator
from pydevice.interpreter.handle import ManagedObject, ReferenceLedger
from pydevice.interpreter.marshal import to_interpreter_kwargs

_logger = logging.getLogger("pydevice.session")


class InterpreterSession:
    """
    Process-wide script execution context shared by all scripted devices.

    The session starts on the first `ensure()` and is kept when the last
    device leaves, unless a shutdown explicitly asks for teardown. Scripts
    are executed once per resolved path and reused by later devices.
    """

    def __init__(self, *, name: str = "default") -> None:
        self.name = name
        self.lock = threading.RLock()
        self.ledger = ReferenceLedger()
        self._translator = FaultTranslator(LoggingReporter(_logger))
        self._python_path: Path | None = None
        self._live_devices = 0
        self._modules: dict[Path, ModuleType] = {}
        self._added_paths: list[str] = []

    @property
    def is_initialized(self) -> bool:
        return self._python_path is not None

    @property
    def python_path(self) -> Path | None:
        return self._python_path

    @property
    def live_devices(self) -> int:
        return self._live_devices

    @property
    def loaded_scripts(self) -> list[Path]:
        return list(self._modules)

    def ensure(self, python_path: str, *, translator: FaultTranslator | None = None) -> None:
        """
        Start the session at `python_path`, or join the running one.

        Joining with a different path fails with LIBRARY_PATH_CONFLICT and
        leaves the running session untouched.
        """
        translator = translator or self._translator
        with self.lock:
            resolved = _resolve_python_path(python_path)
            if resolved is None:
                translator.fail(
                    ErrorKind.INTERPRETER_NOT_FOUND, context=f"python path {python_path!r}"
                )
            if self._python_path is None:
                self._start(resolved)
            elif resolved != self._python_path:
                translator.fail(
                    ErrorKind.LIBRARY_PATH_CONFLICT,
                    context=f"requested {resolved}, session uses {self._python_path}",
                )
            self._live_devices += 1

    def load_class(
        self,
        script_path: str,
        class_name: str,
        *,
        translator: FaultTranslator | None = None,
    ) -> ManagedObject:
        """Return a handle to `class_name` defined in the script, executing it if needed."""
        translator = translator or self._translator
        with self.lock:
            if not self.is_initialized:
                raise RuntimeError("Interpreter session is not initialized; call ensure() first.")
            path = Path(script_path).expanduser()
            if not path.is_file():
                translator.fail(ErrorKind.SCRIPT_NOT_FOUND, context=f"script {path}")
            path = path.resolve()

            module = self._modules.get(path)
            if module is None:
                module = self._execute(path, translator)

            with translator.guard(f"looking up {class_name}"):
                cls = getattr(module, class_name, None)
            if not inspect.isclass(cls):
                translator.fail(
                    ErrorKind.CLASS_NOT_FOUND, context=f"class {class_name} in {path.name}"
                )
            return ManagedObject(cls, ledger=self.ledger, name=class_name)

    def instantiate(
        self,
        class_ref: ManagedObject,
        init_args: Mapping[str, Any],
        *,
        translator: FaultTranslator | None = None,
    ) -> ManagedObject:
        translator = translator or self._translator
        with self.lock, translator.guard(f"constructing {class_ref.name}"):
            instance = class_ref.call(**to_interpreter_kwargs(init_args))
        _logger.debug("Constructed %s", class_ref.name)
        return instance

    def release(self, *, teardown: bool = False) -> None:
        """Leave the session; tear it down only when asked and no device remains."""
        with self.lock:
            if self._live_devices == 0:
                _logger.warning("Session %s released more often than joined", self.name)
            else:
                self._live_devices -= 1
            if teardown and self._live_devices == 0:
                self.teardown()

    def teardown(self) -> bool:
        with self.lock:
            if self._live_devices:
                _logger.warning(
                    "Not tearing down session %s: %d device(s) still attached",
                    self.name,
                    self._live_devices,
                )
                return False
            if self._python_path is None:
                return False
            for module in self._modules.values():
                sys.modules.pop(module.__name__, None)
            self._modules.clear()
            for entry in self._added_paths:
                if entry in sys.path:
                    sys.path.remove(entry)
            self._added_paths.clear()
            _logger.info("Session %s torn down (python path %s)", self.name, self._python_path)
            self._python_path = None
            return True

    def _start(self, python_path: Path) -> None:
        if python_path != Path(sys.prefix).resolve():
            self._add_search_path(python_path)
        self._python_path = python_path
        _logger.info("Session %s started with python path %s", self.name, python_path)

    def _execute(self, path: Path, translator: FaultTranslator) -> ModuleType:
        module_name = f"pydevice_script_{path.stem}_{stable_hash(str(path), length=8)}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            translator.fail(ErrorKind.SCRIPT_NOT_FOUND, context=f"script {path}")

        added_path = self._add_search_path(path.parent)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            with translator.guard(f"executing {path.name}"):
                spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            if added_path:
                self._remove_search_path(path.parent)
            raise
        self._modules[path] = module
        _logger.info("Executed script %s", path)
        return module

    def _add_search_path(self, path: Path) -> bool:
        entry = str(path)
        if entry in sys.path:
            return False
        sys.path.append(entry)
        self._added_paths.append(entry)
        return True

    def _remove_search_path(self, path: Path) -> None:
        entry = str(path)
        if entry in self._added_paths:
            self._added_paths.remove(entry)
        if entry in sys.path:
            sys.path.remove(entry)


def _resolve_python_path(python_path: str) -> Path | None:
    if not python_path or not python_path.strip():
        return Path(sys.prefix).resolve()
    path = Path(python_path.strip()).expanduser()
    if not path.is_dir():
        return None
    return path.resolve()


_default_session: InterpreterSession | None = None
_default_session_lock = threading.Lock()


def default_session() -> InterpreterSession:
    """Return the process-wide session, creating it on first use."""
    global _default_session
    with _default_session_lock:
        if _default_session is None:
            _default_session = InterpreterSession()
        return _default_session
