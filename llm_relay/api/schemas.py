from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessageIn(BaseModel):
    """调用方传入的一条对话消息"""

    role: Literal["system", "user", "assistant"] = Field(..., description="消息角色: system、user 或 assistant")
    content: str = Field(..., description="消息内容")


class RagflowChatRequest(BaseModel):
    """RagFlow 对话请求"""

    question: str = Field(..., description="用户问题")
    stream: bool = Field(False, description="是否使用流式响应")
    session_id: str | None = Field(None, description="会话ID（可选），用于多轮对话")
    user_id: str | None = Field(None, description="用户ID（可选），用于用户追踪")
