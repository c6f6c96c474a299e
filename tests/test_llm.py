from types import SimpleNamespace

import httpx
import openai
import pytest

from sqlpractice.core.config import Settings
from sqlpractice.services.llm import FALLBACK_FEEDBACK, FeedbackClient, FeedbackError


def stub_openai(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def reply(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_missing_api_key_raises():
    client = FeedbackClient(Settings(GROQ_API_KEY=None))
    with pytest.raises(FeedbackError):
        client.complete("Evaluate this")


def test_sends_configured_model_and_limits():
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        return reply("**CORRECT**")

    client = FeedbackClient(Settings())
    client._client = stub_openai(create)
    assert client.complete("Evaluate this") == "**CORRECT**"
    assert calls[0]["model"] == "llama-3.3-70b-versatile"
    assert calls[0]["temperature"] == 0.5
    assert calls[0]["max_tokens"] == 800
    assert calls[0]["messages"] == [{"role": "user", "content": "Evaluate this"}]


def test_empty_reply_uses_fallback():
    client = FeedbackClient(Settings())
    client._client = stub_openai(lambda **kwargs: reply(None))
    assert client.complete("x") == FALLBACK_FEEDBACK

    client._client = stub_openai(lambda **kwargs: SimpleNamespace(choices=[]))
    assert client.complete("x") == FALLBACK_FEEDBACK


def test_api_error_becomes_feedback_error():
    def create(**kwargs):
        raise openai.APIConnectionError(request=httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions"))

    client = FeedbackClient(Settings())
    client._client = stub_openai(create)
    with pytest.raises(FeedbackError):
        client.complete("x")
