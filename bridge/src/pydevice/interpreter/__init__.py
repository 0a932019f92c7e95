from .faults import FaultTranslator
from .handle import ManagedObject, ReferenceLedger
from .marshal import Bridge, PendingBuffer, from_interpreter, to_interpreter
from .session import InterpreterSession, default_session

__all__ = [
    "Bridge",
    "FaultTranslator",
    "InterpreterSession",
    "ManagedObject",
    "PendingBuffer",
    "ReferenceLedger",
    "default_session",
    "from_interpreter",
    "to_interpreter",
]
