from __future__ import annotations

from enum import Enum

DEVICE_OK = 0


class ErrorKind(str, Enum):
    INTERPRETER_NOT_FOUND = "interpreter-not-found"
    LIBRARY_PATH_CONFLICT = "library-path-conflict"
    SCRIPT_NOT_FOUND = "script-not-found"
    CLASS_NOT_FOUND = "class-not-found"
    INTERPRETER_EXCEPTION = "interpreter-raised-exception"
    NO_DIAGNOSTIC_AVAILABLE = "no-diagnostic-available"
    REQUIRED_PROPERTY_MISSING = "required-property-missing"


# Codes are displayed and logged by the host; never renumber.
ERROR_CODES: dict[ErrorKind, int] = {
    ErrorKind.INTERPRETER_NOT_FOUND: 101,
    ErrorKind.LIBRARY_PATH_CONFLICT: 102,
    ErrorKind.SCRIPT_NOT_FOUND: 103,
    ErrorKind.CLASS_NOT_FOUND: 104,
    ErrorKind.INTERPRETER_EXCEPTION: 105,
    ErrorKind.NO_DIAGNOSTIC_AVAILABLE: 106,
    ErrorKind.REQUIRED_PROPERTY_MISSING: 107,
}

ERROR_TEMPLATES: dict[ErrorKind, str] = {
    ErrorKind.INTERPRETER_NOT_FOUND: (
        "Could not initialize python interpreter, perhaps an incorrect path was specified?"
    ),
    ErrorKind.LIBRARY_PATH_CONFLICT: "All Python devices must have the same Python library path",
    ErrorKind.SCRIPT_NOT_FOUND: "Could not find the python script at the specified location",
    ErrorKind.CLASS_NOT_FOUND: "Could not find a class definition with the specified name",
    ErrorKind.INTERPRETER_EXCEPTION: (
        "The Python code threw an exception, check the CoreLog error log for details"
    ),
    ErrorKind.NO_DIAGNOSTIC_AVAILABLE: (
        "A Python error occurred, but no further information was available"
    ),
    ErrorKind.REQUIRED_PROPERTY_MISSING: (
        "The Python class is missing a required property, check CoreLog error log for details"
    ),
}


class BridgeError(Exception):
    """
    A fault at the interpreter boundary, already mapped onto the host taxonomy.

    `detail` carries the exception message for INTERPRETER_EXCEPTION and the
    property name for REQUIRED_PROPERTY_MISSING. `reported` is set once the
    fault has gone through the report channel.
    """

    def __init__(self, kind: ErrorKind, detail: str | None = None) -> None:
        self.kind = kind
        self.detail = detail
        self.reported = False
        super().__init__(self.message)

    @property
    def code(self) -> int:
        return ERROR_CODES[self.kind]

    @property
    def template(self) -> str:
        return ERROR_TEMPLATES[self.kind]

    @property
    def message(self) -> str:
        if self.detail:
            return f"{self.template}: {self.detail}"
        return self.template
