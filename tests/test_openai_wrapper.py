import types

import pytest

import openai_wrapper
from openai_wrapper import chat_completion_safe, error_code, is_insufficient_quota


class FakeAPIError(Exception):
    def __init__(self, message, body=None, status_code=400):
        super().__init__(message)
        self.message = message
        self.body = body
        self.status_code = status_code


class FakeClient:
    """Minimaler Ersatz für ``OpenAI`` mit vorgegebenen Antworten bzw. Fehlern."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.chat = types.SimpleNamespace(completions=types.SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture(autouse=True)
def _isolate_capabilities(monkeypatch):
    monkeypatch.setattr(openai_wrapper, "_UNSUPPORTED_TEMPERATURE_MODELS", set())
    persisted = []
    monkeypatch.setattr(
        openai_wrapper, "_persist_temperature_flag", lambda model, supported: persisted.append((model, supported))
    )
    monkeypatch.setattr(openai_wrapper, "enforce_llm_min_interval", lambda: None)
    return persisted


MESSAGES = [{"role": "user", "content": "ÖGK Blutentnahme venös"}]


def test_success_passes_parameters_through():
    client = FakeClient("ok")
    assert chat_completion_safe(model="gpt-4o-mini", messages=MESSAGES, client=client, temperature=0.2) == "ok"
    assert client.calls == [{"model": "gpt-4o-mini", "messages": MESSAGES, "temperature": 0.2}]


def test_token_limit_parameter_is_renamed():
    err = FakeAPIError(
        "Unsupported parameter",
        body={"code": "unsupported_parameter", "param": "max_completion_tokens"},
    )
    client = FakeClient(err, "ok")
    result = chat_completion_safe(model="gpt-4o-mini", messages=MESSAGES, client=client, max_completion_tokens=1000)
    assert result == "ok"
    assert client.calls[1]["max_tokens"] == 1000
    assert "max_completion_tokens" not in client.calls[1]


def test_temperature_dropped_and_remembered(_isolate_capabilities):
    err = FakeAPIError(
        "Only the default (1) value is supported.",
        body={"code": "unsupported_value", "param": "temperature"},
    )
    client = FakeClient(err, "ok", "ok")
    assert chat_completion_safe(model="custom-model", messages=MESSAGES, client=client, temperature=0.2) == "ok"
    assert "temperature" not in client.calls[1]
    assert _isolate_capabilities == [("custom-model", False)]

    chat_completion_safe(model="custom-model", messages=MESSAGES, client=client, temperature=0.2)
    assert "temperature" not in client.calls[2]


def test_fixed_sampling_models_never_get_temperature():
    client = FakeClient("ok")
    chat_completion_safe(model="gpt-5-mini", messages=MESSAGES, client=client, temperature=0.2)
    assert "temperature" not in client.calls[0]


def test_other_errors_are_raised_without_retry():
    err = FakeAPIError("Server down", body={"code": "server_error"}, status_code=503)
    client = FakeClient(err, "ok")
    with pytest.raises(FakeAPIError):
        chat_completion_safe(model="gpt-4o-mini", messages=MESSAGES, client=client, temperature=0.2)
    assert len(client.calls) == 1


def test_insufficient_quota_detection():
    quota = FakeAPIError("quota", body={"code": "insufficient_quota", "type": "insufficient_quota"}, status_code=429)
    rate = FakeAPIError("rate", body={"error": {"code": "rate_limit_exceeded"}}, status_code=429)
    assert is_insufficient_quota(quota)
    assert not is_insufficient_quota(rate)
    assert error_code(rate) == "rate_limit_exceeded"
    assert error_code(Exception("plain")) is None
