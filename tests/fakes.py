"""
Test doubles for the pipeline's external collaborators:
inference backend, sink and persistence hook.
"""

import json
import threading

from agent.backend import Citation, InferenceResponse
from ingestion.event_schema import Coords, Incident, IncidentType, Severity
from ingestion.identifiers import new_incident_id


VALID_PAYLOAD = {
    "summary": "Structure fire at 3rd and Market with units en route.",
    "type": "FIRE",
    "severity": "CRITICAL",
    "priority_score": 9,
    "coords": {"lat": 37.7856, "lng": -122.4036},
}


def payload_response(citations=None, **overrides) -> InferenceResponse:
    payload = dict(VALID_PAYLOAD)
    for key, value in overrides.items():
        if value is None:
            payload.pop(key, None)
        else:
            payload[key] = value
    return InferenceResponse(
        text=json.dumps(payload),
        citations=[Citation(**c) for c in (citations or [])],
    )


class StatusError(Exception):
    """Looks like an SDK error: carries an explicit status code."""

    def __init__(self, status_code, message="backend said no"):
        super().__init__(message)
        self.status_code = status_code


class FakeBackend:
    """
    Scripted backend. Each generate() call consumes the next outcome:
    an InferenceResponse is returned, an Exception is raised. The last
    outcome repeats once the script runs out.
    """

    def __init__(self, *outcomes, ping_error=None, analysis="- Secure perimeter"):
        self.outcomes = list(outcomes) or [payload_response()]
        self.ping_error = ping_error
        self.analysis = analysis
        self.requests = []
        self.pings = 0
        self._lock = threading.Lock()

    @property
    def calls(self):
        return len(self.requests)

    def generate(self, request):
        with self._lock:
            self.requests.append(request)
            index = min(len(self.requests) - 1, len(self.outcomes) - 1)
            outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def ping(self):
        self.pings += 1
        if self.ping_error is not None:
            raise self.ping_error

    def complete(self, prompt, max_tokens=None, model=None):
        if isinstance(self.analysis, Exception):
            raise self.analysis
        return self.analysis


class RecordingSink:

    def __init__(self):
        self.events = []
        self.errors = []
        self._lock = threading.Lock()

    def notify(self, event_name, payload=None):
        with self._lock:
            self.events.append((event_name, payload))

    def notify_error(self, error, context):
        with self._lock:
            self.errors.append((error, context))

    def names(self):
        with self._lock:
            return [name for name, _ in self.events]


class ExplodingSink:

    def notify(self, event_name, payload=None):
        raise RuntimeError(f"sink down ({event_name})")

    def notify_error(self, error, context):
        raise RuntimeError("sink down")


class DictStore:
    """In-memory persistence hook."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value


class BrokenStore:

    def get(self, key):
        raise OSError("disk gone")

    def set(self, key, value):
        raise OSError("disk gone")


def make_incident(**overrides):
    fields = dict(
        id=new_incident_id(),
        summary="Water main break on Valencia.",
        type=IncidentType.UTILITY,
        severity=Severity.MAJOR,
        priority_score=6,
        coords=Coords(lat=37.76, lng=-122.42),
    )
    fields.update(overrides)
    return Incident(**fields)
