"""
Shared fixtures for the StarORM test suite.

Model types are created per test with ``create_model`` so registries,
adapters and listeners never leak between tests.
"""

import pytest

from starorm import MemoryStore, create_model, set_settings


class CallbackRecorder:
    """Callable recording every callback invocation."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)

    @property
    def called(self) -> bool:
        return bool(self.calls)

    @property
    def args(self) -> tuple:
        return self.calls[-1]

    @property
    def error(self):
        return self.args[0] if self.args else None

    @property
    def results(self) -> tuple:
        return self.args[1:]


class EventRecorder:
    """Collects ``(name, args)`` pairs from emitter listeners."""

    def __init__(self):
        self.events = []

    def listen(self, target, *names):
        for name in names:
            target.on(name, lambda *args, _name=name: self.events.append((_name, args)))
        return self

    @property
    def names(self):
        return [name for name, _ in self.events]

    def args_of(self, name):
        return [args for event, args in self.events if event == name]


@pytest.fixture(autouse=True)
def reset_settings():
    """Every test starts from environment-derived settings."""
    set_settings(None)
    yield
    set_settings(None)


@pytest.fixture
def callback():
    return CallbackRecorder()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def User():
    return create_model("user").attr("id", primary=True).attr("name")


@pytest.fixture
def Post():
    return create_model("post").attr("id", primary=True).attr("title")


@pytest.fixture
def Tag():
    return create_model("tag").attr("id", primary=True).attr("label")


@pytest.fixture
def store():
    return MemoryStore()
