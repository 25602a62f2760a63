import pytest

from llm_relay.domain.exceptions import ValidationError
from llm_relay.domain.models import ChatMessage, ChatRequest, ChatResponse, default_conversation


def test_request_requires_messages():
    with pytest.raises(ValidationError) as exc_info:
        ChatRequest(model="deepseek-chat", messages=[])
    assert exc_info.value.code == "EMPTY_MESSAGES"
    assert exc_info.value.http_status == 400


def test_message_rejects_unknown_role():
    with pytest.raises(ValidationError):
        ChatMessage(role="tool", content="x")


def test_last_user_content_skips_assistant_turns():
    req = ChatRequest(
        model="",
        messages=[
            ChatMessage(role="user", content="first"),
            ChatMessage(role="assistant", content="answer"),
            ChatMessage(role="user", content="second"),
            ChatMessage(role="assistant", content="another"),
        ],
    )
    assert req.last_user_content == "second"


def test_last_user_content_without_user_message():
    req = ChatRequest(model="", messages=[ChatMessage(role="system", content="s")])
    with pytest.raises(ValidationError):
        req.last_user_content


def test_failed_response_cannot_carry_answer():
    with pytest.raises(ValueError):
        ChatResponse(status="failure", answer="x", error_code=500)


def test_response_constructors():
    ok = ChatResponse.success("hi", raw={"a": 1})
    assert ok.ok and ok.answer == "hi" and ok.raw == {"a": 1}

    failed = ChatResponse.failure(502, "boom")
    assert not failed.ok
    assert failed.answer is None
    assert (failed.error_code, failed.error_message) == (502, "boom")


def test_default_conversation():
    messages = default_conversation("hello")
    assert [m.to_payload() for m in messages] == [
        {"role": "system", "content": "You are a helpful assistant"},
        {"role": "user", "content": "hello"},
    ]
    assert default_conversation("hi", system_prompt="be brief")[0].content == "be brief"
