"""上游后端抽象接口。

中继端点不直接拼装各厂商的 HTTP 请求，而是依赖此协议：

- 每类后端实现一个 Backend（如 OpenAICompatibleBackend、RagflowBackend）。
- 负责：校验配置，把 ChatRequest 转成具体接口的 URL 与请求体。
- 真正的网络调用统一交给 UpstreamClient。
"""

from dataclasses import dataclass
from typing import Any, Dict, Protocol

from llm_relay.domain.models import ChatRequest
from llm_relay.providers.http_client import UpstreamClient
from llm_relay.providers.registry import BackendConfig


@dataclass(frozen=True)
class PreparedCall:
    """一次上游调用所需的地址与请求体。"""

    endpoint: str
    body: Dict[str, Any]


class Backend(Protocol):
    """上游后端协议。

    实现者需要提供：
    - name: 后端名称，用于日志。
    - config: 后端配置（响应结构、分帧方式、结束标记）。
    - client: 绑定了密钥与连接池的 UpstreamClient。
    - prepare(req): 校验配置并生成 PreparedCall。
    """

    name: str
    config: BackendConfig
    client: UpstreamClient

    def prepare(self, req: ChatRequest) -> PreparedCall:
        ...
