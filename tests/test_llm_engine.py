from types import SimpleNamespace

import openai
import pytest

from tabletalk.config import LLMConfig
from tabletalk.core.errors import ExternalServiceError
from tabletalk.inference.llm_engine import LLMEngine


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _engine(completions):
    engine = LLMEngine(LLMConfig(api_key="test-key"))
    engine._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return engine


def test_complete_returns_stripped_text():
    completions = FakeCompletions("  SELECT * FROM data \n")
    engine = _engine(completions)

    assert engine.complete("prompt") == "SELECT * FROM data"

    call = completions.calls[0]
    assert call["model"] == "llama-3.3-70b-versatile"
    assert call["temperature"] == 0.1
    assert call["messages"][0]["role"] == "system"
    assert call["messages"][1] == {"role": "user", "content": "prompt"}


def test_client_errors_become_external_service_errors():
    engine = _engine(FakeCompletions(error=openai.OpenAIError("connection reset")))
    with pytest.raises(ExternalServiceError):
        engine.complete("prompt")


def test_empty_completion_is_an_error():
    engine = _engine(FakeCompletions("   "))
    with pytest.raises(ExternalServiceError):
        engine.complete("prompt")


def test_malformed_response_is_an_error():
    class Broken:
        def create(self, **kwargs):
            return SimpleNamespace(choices=[])

    engine = _engine(Broken())
    with pytest.raises(ExternalServiceError):
        engine.complete("prompt")


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    engine = LLMEngine(LLMConfig())
    assert engine.model == "llama-3.3-70b-versatile"
    with pytest.raises(ExternalServiceError):
        engine.complete("prompt")
