"""统一的对话与结果数据模型。

本模块定义了中继在不同上游后端之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- ChatRequest: 发给上游后端的完整请求。
- ChatResponse: 非流式调用的统一结果（成功或失败）。
- StreamChunk: 流式归一化过程中组装出的一行逻辑文本。

所有实体都按请求创建，响应完整中继后即丢弃，不跨请求保存。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from llm_relay.domain.exceptions import ValidationError


# 与 OpenAI / DeepSeek 等厂商的 role 字段对应
Role = Literal["system", "user", "assistant"]
ROLES = ("system", "user", "assistant")

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant"


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息；多条消息的顺序即对话轮次，发送后不可修改。"""

    role: Role
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValidationError(code="INVALID_ROLE", message=f"Unsupported role: {self.role!r}")

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    - model: 上游模型名；为空时由后端配置的默认模型补齐。
    - messages: 有序消息列表，至少一条。
    - stream: 是否要求上游流式返回。
    - extra: 后端特有字段（如 RagFlow 的 session_id、user_id）。
    """

    model: str
    messages: List[ChatMessage]
    stream: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.messages:
            raise ValidationError(code="EMPTY_MESSAGES", message="messages must not be empty")

    @property
    def last_user_content(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content
        raise ValidationError(code="NO_USER_MESSAGE", message="request carries no user message")


@dataclass
class ChatResponse:
    """非流式调用的统一结果。

    status 为 failure 时不允许携带 answer；失败信息放在 error_code / error_message。
    raw 保存上游原始 JSON，便于按后端约定原样返回或排查问题。
    """

    status: Literal["success", "failure"]
    answer: Optional[str] = None
    error_code: Optional[int] = None
    error_message: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        if self.status == "failure" and self.answer is not None:
            raise ValueError("a failed ChatResponse cannot carry an answer")

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, answer: str, raw: Optional[Dict[str, Any]] = None) -> "ChatResponse":
        return cls(status="success", answer=answer, raw=raw)

    @classmethod
    def failure(
        cls,
        error_code: int,
        error_message: str,
        raw: Optional[Dict[str, Any]] = None,
    ) -> "ChatResponse":
        return cls(status="failure", error_code=error_code, error_message=error_message, raw=raw)


@dataclass(frozen=True)
class StreamChunk:
    """流中的一行逻辑文本；is_terminal 表示后端在带内发出的结束标记。"""

    text: str
    is_terminal: bool = False


def default_conversation(user_message: str, system_prompt: str = DEFAULT_SYSTEM_PROMPT) -> List[ChatMessage]:
    """构造最小可用的 system + user 消息对。"""

    return [
        ChatMessage(role="system", content=system_prompt),
        ChatMessage(role="user", content=user_message),
    ]
