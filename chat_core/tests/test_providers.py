import pytest

from chat_core.providers import create_provider
from chat_core.providers.openai_client import OpenAICompatibleClient
from chat_core.providers.registry import get_provider_config


class DummySettings:
    default_provider = "glm"
    glm_api_key = "g-0123456789"
    openai_api_key = None
    http_timeout = 1.0


def test_create_provider_default(monkeypatch):
    monkeypatch.setattr("chat_core.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, OpenAICompatibleClient)
    assert provider.name == "glm"


def test_create_provider_explicit(monkeypatch):
    monkeypatch.setattr("chat_core.providers.settings", DummySettings())
    assert create_provider("OpenAI").name == "openai"


def test_unknown_provider():
    with pytest.raises(KeyError):
        get_provider_config("nope")


def test_unregistered_model_passes_through():
    spec = get_provider_config("openai").resolve_model("gpt-4.1")
    assert spec.provider_model == "gpt-4.1"
    assert spec.max_tokens == 4096
