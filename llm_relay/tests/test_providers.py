import pytest

from llm_relay.config.settings import RelaySettings
from llm_relay.domain.exceptions import ValidationError
from llm_relay.domain.models import ChatMessage, ChatRequest, default_conversation
from llm_relay.normalizer import Framing, is_done_marker, is_ragflow_end_marker
from llm_relay.providers import build_backends, create_backend
from llm_relay.providers.openai_backend import OpenAICompatibleBackend
from llm_relay.providers.ragflow_backend import RagflowBackend


def make_settings(**overrides) -> RelaySettings:
    values = {
        "deepseek_api_key": "sk-0123456789",
        "deepseek_base_url": "https://deepseek.test/",
        "ragflow_api_url": "http://ragflow.test/api/v1/chats/c1/completions",
        "ragflow_api_key": "ragflow-0123456789",
        "local_base_url": "http://runtime.test/v1",
        "local_model": "llama3",
    }
    values.update(overrides)
    return RelaySettings(**values)


def test_create_backend_by_name():
    settings = make_settings()
    assert isinstance(create_backend("deepseek", settings), OpenAICompatibleBackend)
    assert isinstance(create_backend("RagFlow", settings), RagflowBackend)
    assert isinstance(create_backend("local", settings), OpenAICompatibleBackend)


def test_create_backend_unknown_name():
    with pytest.raises(ValidationError):
        create_backend("openai", make_settings())


def test_build_backends_shares_connection_pool():
    sentinel = object()
    backends = build_backends(make_settings(), http=sentinel)
    assert set(backends) == {"local", "deepseek", "ragflow"}
    assert all(b.client._http is sentinel for b in backends.values())


def test_deepseek_payload_uses_default_model():
    backend = create_backend("deepseek", make_settings(deepseek_default_model="deepseek-reasoner"))
    call = backend.prepare(ChatRequest(model="", messages=default_conversation("hi")))
    assert call.endpoint == "https://deepseek.test/chat/completions"
    assert call.body == {
        "model": "deepseek-reasoner",
        "messages": [
            {"role": "system", "content": "You are a helpful assistant"},
            {"role": "user", "content": "hi"},
        ],
        "stream": False,
    }


def test_deepseek_payload_keeps_explicit_model_and_order():
    backend = create_backend("deepseek", make_settings())
    messages = [
        ChatMessage(role="user", content="1"),
        ChatMessage(role="assistant", content="2"),
        ChatMessage(role="user", content="3"),
    ]
    call = backend.prepare(ChatRequest(model="deepseek-chat", messages=messages, stream=True))
    assert call.body["model"] == "deepseek-chat"
    assert [m["content"] for m in call.body["messages"]] == ["1", "2", "3"]
    assert call.body["stream"] is True


def test_deepseek_requires_api_key():
    backend = create_backend("deepseek", make_settings(deepseek_api_key=None))
    with pytest.raises(ValidationError) as exc_info:
        backend.prepare(ChatRequest(model="", messages=default_conversation("hi")))
    assert exc_info.value.code == "MISSING_API_KEY"


def test_local_backend_needs_no_key():
    backend = create_backend("local", make_settings())
    call = backend.prepare(ChatRequest(model="", messages=[ChatMessage(role="user", content="hi")], stream=True))
    assert call.endpoint == "http://runtime.test/v1/chat/completions"
    assert call.body["model"] == "llama3"
    assert backend.config.framing is Framing.SSE
    assert backend.config.is_terminal is is_done_marker


def test_ragflow_payload_passes_optional_fields():
    backend = create_backend("ragflow", make_settings())
    req = ChatRequest(
        model="",
        messages=[ChatMessage(role="user", content="what is RAG?")],
        stream=True,
        extra={"session_id": "s1", "user_id": None},
    )
    call = backend.prepare(req)
    assert call.endpoint == "http://ragflow.test/api/v1/chats/c1/completions"
    assert call.body == {"question": "what is RAG?", "stream": True, "session_id": "s1"}
    assert backend.config.is_terminal is is_ragflow_end_marker


def test_ragflow_requires_url():
    backend = create_backend("ragflow", make_settings(ragflow_api_url=None))
    with pytest.raises(ValidationError) as exc_info:
        backend.prepare(ChatRequest(model="", messages=[ChatMessage(role="user", content="q")]))
    assert exc_info.value.code == "MISSING_API_URL"
