from __future__ import annotations

import pytest

from pydevice.interpreter.session import InterpreterSession
from pydevice.testkit import FakeReporter


@pytest.fixture
def session():
    session = InterpreterSession(name="test")
    yield session
    while session.live_devices:
        session.release()
    session.teardown()


@pytest.fixture
def reporter() -> FakeReporter:
    return FakeReporter()
