import pytest

from agent.classifier import ClassificationClient
from agent.orchestrator import PipelineOrchestrator
from storage.content_cache import ContentCache

from fakes import FakeBackend, RecordingSink


class SleepRecorder:
    """Stands in for time.sleep - records delays, never waits."""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_classifier(sleeper):
    def build(backend, jitter=lambda: 0.5):
        return ClassificationClient(backend, sleep=sleeper, jitter=jitter)
    return build


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_orchestrator(make_classifier, sink):
    created = []

    def build(backend, cache=None, sink_override=None):
        orchestrator = PipelineOrchestrator(
            classifier=make_classifier(backend),
            cache=ContentCache() if cache is None else cache,
            sink=sink_override or sink,
        )
        created.append(orchestrator)
        return orchestrator

    yield build
    for orchestrator in created:
        orchestrator.flush_notifications(timeout=2.0)


@pytest.fixture
def orchestrator(make_orchestrator, backend):
    return make_orchestrator(backend)
