from .fakes import BrokenReporter, FakeReporter, ReportCall
from .scripts import write_script

__all__ = ["BrokenReporter", "FakeReporter", "ReportCall", "write_script"]
