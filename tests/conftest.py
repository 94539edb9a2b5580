from __future__ import annotations

from collections.abc import Iterator

import pytest
from fakes import SYSTEMS, FakeNotifier, FakeSummarizer, FakeWhisperModel
from fastapi.testclient import TestClient

from livedigest.api.main import create_app
from livedigest.runtime import Runtime
from livedigest.summary.state_machine import SummaryStateMachine
from livedigest.summary.store import InMemorySummaryStore
from livedigest.summary.sweeper import StaleStateSweeper
from livedigest.transcription.engine import TranscriptionEngine


@pytest.fixture
def whisper() -> FakeWhisperModel:
    return FakeWhisperModel()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def store() -> InMemorySummaryStore:
    return InMemorySummaryStore()


@pytest.fixture
def machine(
    store: InMemorySummaryStore, summarizer: FakeSummarizer, notifier: FakeNotifier
) -> SummaryStateMachine:
    return SummaryStateMachine(store, summarizer, notifier, SYSTEMS)


@pytest.fixture
def runtime(whisper: FakeWhisperModel, machine: SummaryStateMachine) -> Runtime:
    engine = TranscriptionEngine(lambda: whisper)
    return Runtime(engine=engine, machine=machine, sweeper=StaleStateSweeper(machine, period=3600))


@pytest.fixture
def client(runtime: Runtime) -> Iterator[TestClient]:
    """TestClient with the lifespan running, so the runtime is started and stopped."""
    with TestClient(create_app(runtime)) as test_client:
        yield test_client
