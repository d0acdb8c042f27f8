from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import pytest

from project_context.domain.models import Message, MessageRole, ProjectFile
from project_context.infrastructure.config import ContextSettings
from project_context.infrastructure.observability.logging import metrics

# Short window keeps the debounce tests fast
TEST_DEBOUNCE = 0.05


class FakeClock:
    """Manually advanced clock for the access tracker."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSync:
    """
    Async sync function that records every payload it receives.

    ``delays`` maps a file content to seconds spent before that write
    completes. ``durable`` holds the last completed content per path.
    """

    def __init__(self, fail: bool = False, delays: Optional[Dict[str, float]] = None):
        self.calls: List = []
        self.fail = fail
        self.delays = delays or {}
        self.durable: Dict[str, str] = {}

    async def __call__(self, payload) -> None:
        self.calls.append(payload)
        files = payload if isinstance(payload, list) else [payload]

        delay = max((self.delays.get(file.content, 0) for file in files), default=0)
        if delay:
            await asyncio.sleep(delay)

        if self.fail:
            raise IOError("database unavailable")

        for file in files:
            self.durable[file.path] = file.content


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> ContextSettings:
    return ContextSettings(debounce_seconds=TEST_DEBOUNCE)


@pytest.fixture
def instructions():
    """Instruction provider returning a fixed block that names the provider."""

    def _provider(provider_hint: str) -> str:
        return f"You are an app builder. Provider: {provider_hint}."

    return _provider


@pytest.fixture
def make_file():
    def _make(path: str, content: str = "", language: str | None = None) -> ProjectFile:
        return ProjectFile(path=path, content=content, language=language)

    return _make


@pytest.fixture
def make_history():
    """Alternating user/assistant history with fixed-size contents."""

    def _make(count: int, chars: int = 40) -> List[Message]:
        history = []
        for i in range(count):
            role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
            head = f"Message number {i} from {role.value}\n"
            history.append(Message(role=role, content=head + "x" * max(chars - len(head), 0)))
        return history

    return _make
