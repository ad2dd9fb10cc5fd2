from types import SimpleNamespace

import litellm
import pytest

from agentbuddy.config_loader import EndpointConfig
from agentbuddy.router import EndpointFailure, Router


def _fake_response(content: str, total_tokens: int = 30):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=20, completion_tokens=10, total_tokens=total_tokens),
    )


@pytest.fixture
def endpoint() -> EndpointConfig:
    return EndpointConfig(request_attempts=3, retry_wait_min=0, retry_wait_max=0)


@pytest.fixture(autouse=True)
def no_cost_lookup(monkeypatch):
    monkeypatch.setattr(litellm, "completion_cost", lambda **kwargs: 0.001)


def test_complete_sends_endpoint_settings(monkeypatch, endpoint):
    seen = {}

    def fake_completion(**kwargs):
        seen.update(kwargs)
        return _fake_response('{"phase": "exit"}')

    monkeypatch.setattr(litellm, "completion", fake_completion)
    router = Router(endpoint, api_key="test-key")
    messages = [{"role": "system", "content": "sys"}]

    response = router.complete(messages, response_format={"type": "json_object"})

    assert response.content == '{"phase": "exit"}'
    assert response.tokens_used == 30
    assert seen["model"] == endpoint.model
    assert seen["api_base"] == endpoint.base_url
    assert seen["api_key"] == "test-key"
    assert seen["messages"] == messages
    assert seen["response_format"] == {"type": "json_object"}


def test_usage_is_accumulated(monkeypatch, endpoint):
    monkeypatch.setattr(litellm, "completion", lambda **kwargs: _fake_response("{}"))
    router = Router(endpoint, api_key="k")

    router.complete([{"role": "user", "content": "a"}])
    router.complete([{"role": "user", "content": "b"}])

    summary = router.usage.summary()
    assert summary["call_count"] == 2
    assert summary["total_tokens"] == 60
    assert summary["estimated_cost"] == 0.002


def test_transient_failure_is_retried(monkeypatch, endpoint):
    calls = []

    def flaky(**kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise ConnectionError("reset by peer")
        return _fake_response('{"phase": "exit"}')

    monkeypatch.setattr(litellm, "completion", flaky)
    router = Router(endpoint, api_key="k")

    assert router.complete([]).content == '{"phase": "exit"}'
    assert len(calls) == 2


def test_endpoint_failure_after_all_attempts(monkeypatch, endpoint):
    calls = []

    def down(**kwargs):
        calls.append(1)
        raise ConnectionError("endpoint down")

    monkeypatch.setattr(litellm, "completion", down)
    router = Router(endpoint, api_key="k")

    with pytest.raises(EndpointFailure, match="endpoint down"):
        router.complete([])
    assert len(calls) == 3
    assert router.usage.summary()["call_count"] == 0


def test_missing_content_becomes_empty_string(monkeypatch, endpoint):
    monkeypatch.setattr(litellm, "completion", lambda **kwargs: _fake_response(None))
    router = Router(endpoint, api_key="k")
    assert router.complete([]).content == ""
