"""Shared fixtures: a scripted generator, a recording channel and a two-model sequence."""

from __future__ import annotations

from typing import AsyncIterator, Callable, Sequence, Union

import pytest

from app.middleware.llm_rate_limiter import LLMConcurrencyManager
from app.models.chat import GenerationParameters, Message, ModelDescriptor, Role
from app.persistence.session_store import SessionStore
from app.services.generator import ModelResponseGenerator
from app.services.sequencer import ModelSequencer
from app.streaming.events import StreamEvent, StreamEventType

ScriptResult = Union[list[str], Exception]
Script = Union[ScriptResult, Callable[[Sequence[Message]], ScriptResult]]


class ScriptedGenerator(ModelResponseGenerator):
    """Generator whose output per model id is scripted by the test."""

    def __init__(self, scripts: dict[str, Script]):
        self.scripts = scripts
        self.calls: list[tuple[str, tuple[Message, ...]]] = []

    async def stream(self, descriptor: ModelDescriptor, transcript: Sequence[Message]) -> AsyncIterator[str]:
        self.calls.append((descriptor.id, tuple(transcript)))
        script = self.scripts[descriptor.id]
        result = script(transcript) if callable(script) else script
        if isinstance(result, Exception):
            raise result
        for fragment in result:
            yield fragment


class RecordingChannel:
    """Event channel that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[StreamEvent] = []

    async def emit(self, event: StreamEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[StreamEventType]:
        return [event.event for event in self.events]

    def chunks(self, model_id: str) -> list[tuple[str, bool]]:
        return [
            (event.data.message, event.data.is_complete)
            for event in self.events
            if event.event == StreamEventType.RECEIVE_MESSAGE and event.data.model_id == model_id
        ]


def last_assistant(transcript: Sequence[Message]) -> str:
    return next(m.content for m in reversed(transcript) if m.role == Role.ASSISTANT)


@pytest.fixture
def descriptors() -> tuple[ModelDescriptor, ...]:
    return (
        ModelDescriptor(id="A", model_ref="model-a", order=1, parameters=GenerationParameters()),
        ModelDescriptor(
            id="B",
            model_ref="model-b",
            order=2,
            parameters=GenerationParameters(temperature=0.2, max_tokens=256),
        ),
    )


@pytest.fixture
def store() -> SessionStore:
    store = SessionStore()
    store.create("s1")
    return store


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def scripts() -> dict[str, Script]:
    return {
        "A": ["hello"],
        "B": lambda transcript: ["hi, " + last_assistant(transcript)],
    }


@pytest.fixture
def generator(scripts) -> ScriptedGenerator:
    return ScriptedGenerator(scripts)


@pytest.fixture
def sequencer(store, generator, descriptors) -> ModelSequencer:
    return ModelSequencer(store=store, generator=generator, descriptors=descriptors)


@pytest.fixture(autouse=True)
def reset_concurrency_manager():
    LLMConcurrencyManager.reset()
    yield
    LLMConcurrencyManager.reset()
