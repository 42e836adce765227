"""
AnthropicBackend request building and response mapping, plus the
error taxonomy the classifier applies to what the SDK raises.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from agent.backend import AnthropicBackend, InferenceRequest
from agent.errors import (
    PermanentBackendError, TransientBackendError,
    as_backend_error, is_retryable, status_of,
)

from fakes import StatusError


def text_block(text):
    return SimpleNamespace(type="text", text=text)


def search_block(*results):
    return SimpleNamespace(type="web_search_tool_result", content=list(results))


def result(url, title=None):
    return SimpleNamespace(type="web_search_result", url=url, title=title)


def request(use_grounding):
    return InferenceRequest(
        system_instruction="Classify.",
        contents="Fire at the pier.",
        response_schema={"type": "object"},
        use_grounding=use_grounding,
    )


@pytest.fixture
def sdk():
    client = MagicMock()
    client.messages.create.return_value = SimpleNamespace(content=[text_block('{"a": 1}')])
    return client


class TestAnthropicBackend:

    def test_plain_request(self, sdk):
        backend = AnthropicBackend(api_key="k", model="m", max_tokens=256, client=sdk)

        response = backend.generate(request(use_grounding=False))

        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["model"] == "m"
        assert kwargs["max_tokens"] == 256
        assert "tools" not in kwargs
        assert '"type": "object"' in kwargs["system"]
        assert kwargs["messages"] == [{"role": "user", "content": "Fire at the pier."}]
        assert response.text == '{"a": 1}'
        assert response.citations == []

    def test_grounded_request_collects_citations(self, sdk):
        sdk.messages.create.return_value = SimpleNamespace(content=[
            search_block(result("https://sfgate.com/a", "SFGate"), result("https://sf.gov")),
            text_block('{"a": '),
            search_block(result("https://sfgate.com/a", "dup"),
                         result("https://sf-fire.org", "SFFD")),
            text_block("1}"),
        ])
        backend = AnthropicBackend(api_key="k", model="m", client=sdk)

        response = backend.generate(request(use_grounding=True))

        tools = sdk.messages.create.call_args.kwargs["tools"]
        assert tools[0]["type"] == "web_search_20250305"
        assert response.text == '{"a": 1}'
        assert [(c.title, c.uri) for c in response.citations] == [
            ("SFGate", "https://sfgate.com/a"),
            (None, "https://sf.gov"),
            ("SFFD", "https://sf-fire.org"),
        ]

    def test_search_error_payload_is_skipped(self, sdk):
        sdk.messages.create.return_value = SimpleNamespace(content=[
            SimpleNamespace(type="web_search_tool_result",
                            content=SimpleNamespace(error_code="max_uses_exceeded")),
            text_block("{}"),
        ])

        response = AnthropicBackend(api_key="k", client=sdk).generate(request(True))

        assert response.citations == []

    def test_ping_is_one_token(self, sdk):
        AnthropicBackend(api_key="k", client=sdk).ping()

        assert sdk.messages.create.call_args.kwargs["max_tokens"] == 1

    def test_ping_propagates_failure(self, sdk):
        sdk.messages.create.side_effect = StatusError(503)

        with pytest.raises(StatusError):
            AnthropicBackend(api_key="k", client=sdk).ping()


class TestErrorTaxonomy:

    @pytest.mark.parametrize("exc, retryable", [
        (StatusError(429), True),
        (ValueError("bad json"), True),
        (StatusError(400), False),
        (StatusError(503), False),
    ])
    def test_retry_decision(self, exc, retryable):
        assert is_retryable(exc) is retryable

    def test_status_attribute_fallback(self):
        exc = RuntimeError("x")
        exc.status = 429
        assert status_of(exc) == 429

    def test_non_int_status_is_ignored(self):
        exc = RuntimeError("x")
        exc.status_code = "429"
        assert status_of(exc) is None

    def test_mapping_keeps_status(self):
        transient = as_backend_error(StatusError(429))
        permanent = as_backend_error(StatusError(401))

        assert isinstance(transient, TransientBackendError)
        assert isinstance(permanent, PermanentBackendError)
        assert permanent.status_code == 401
