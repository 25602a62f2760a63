"""上游后端配置。

每个后端集中声明：默认地址、聊天接口路径、默认模型、非流式响应结构、
流式分帧方式、带内结束标记，以及流中每行如何转发给调用方。
地址与密钥可由 settings 覆盖。"""

from dataclasses import dataclass
from typing import Mapping

from llm_relay.domain.exceptions import ValidationError
from llm_relay.normalizer import (
    Framing,
    ResponseShape,
    checked_line,
    delta_content,
    is_done_marker,
    is_ragflow_end_marker,
)
from llm_relay.normalizer.stream import LineProjector, TerminalDetector


@dataclass(frozen=True)
class BackendConfig:
    """单个上游后端的配置。"""

    name: str
    base_url: str
    chat_path: str
    default_model: str
    response_shape: ResponseShape
    framing: Framing
    is_terminal: TerminalDetector
    # project 取出每行要转发的内容；delimiter 是转发时追加在每段内容后的分隔符
    project: LineProjector
    delimiter: str


# 本地模型运行时（Ollama 等提供的 OpenAI 兼容接口）
LOCAL_CONFIG = BackendConfig(
    name="local",
    base_url="http://localhost:11434/v1",
    chat_path="/chat/completions",
    default_model="qwen2.5:7b",
    response_shape="openai",
    framing=Framing.SSE,
    is_terminal=is_done_marker,
    project=delta_content,
    delimiter="",
)

DEEPSEEK_CONFIG = BackendConfig(
    name="deepseek",
    base_url="https://api.deepseek.com",
    chat_path="/chat/completions",
    default_model="deepseek-chat",
    response_shape="openai",
    framing=Framing.SSE,
    is_terminal=is_done_marker,
    project=delta_content,
    delimiter="",
)

# RagFlow 的地址是完整的 /api/v1/chats/{chat_id}/completions，由配置提供
RAGFLOW_CONFIG = BackendConfig(
    name="ragflow",
    base_url="",
    chat_path="",
    default_model="",
    response_shape="ragflow",
    framing=Framing.SSE,
    is_terminal=is_ragflow_end_marker,
    project=checked_line,
    delimiter="\n",
)


BACKEND_REGISTRY: Mapping[str, BackendConfig] = {
    "local": LOCAL_CONFIG,
    "deepseek": DEEPSEEK_CONFIG,
    "ragflow": RAGFLOW_CONFIG,
}


def get_backend_config(name: str) -> BackendConfig:
    """根据名称获取 BackendConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in BACKEND_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise ValidationError(code="UNKNOWN_BACKEND", message=f"Unknown backend: {name!r}")
