"""Shared pytest fixtures and stubs for the boardroom tests."""

import asyncio
from typing import Callable, List, Sequence

import pytest

from boardroom.gateway import GatewayReply, GenerationError
from boardroom.personas import PersonaType
from boardroom.states import ConversationState, Message


class StubGateway:
    """Deterministic ResponseGateway. Replies contain no digits so they never look like claims."""

    def __init__(self, fail_on: Sequence[int] = (), fact_check_moderator: bool = True):
        self.fail_on = set(fail_on)
        self.fact_check_moderator = fact_check_moderator
        self.calls: List[tuple] = []

    async def generate(self, persona, problem, history):
        self.calls.append((persona, problem, list(history)))
        if len(self.calls) in self.fail_on:
            raise GenerationError("stub failure")
        return GatewayReply(
            content=f"{persona.value} weighs in on the problem",
            fact_checked=self.fact_check_moderator and persona is PersonaType.MODERATOR,
        )


class BlockingGateway:
    """Gateway whose calls hang until ``release`` is set."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0
        self.cancelled = 0

    async def generate(self, persona, problem, history):
        self.calls += 1
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return GatewayReply(content=f"{persona.value} finally answers")


class FailingGateway:
    def __init__(self):
        self.calls = 0

    async def generate(self, persona, problem, history):
        self.calls += 1
        raise GenerationError("upstream unavailable")


class SlowGateway:
    def __init__(self, delay: float):
        self.delay = delay
        self.calls = 0

    async def generate(self, persona, problem, history):
        self.calls += 1
        await asyncio.sleep(self.delay)
        return GatewayReply(content="too late")


class Recorder:
    """Collects engine callbacks."""

    def __init__(self):
        self.messages: List[Message] = []
        self.states: List[ConversationState] = []

    def on_message(self, message: Message) -> None:
        self.messages.append(message)

    def on_state(self, state: ConversationState) -> None:
        self.states.append(state)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not reached before timeout")
        await asyncio.sleep(0.005)


def make_message(persona: PersonaType, content: str = "a thought") -> Message:
    return Message(content=content, persona=persona)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def stub_gateway():
    return StubGateway()
