"""OpenAI 兼容后端适配器（DeepSeek、本地模型运行时）。

接口风格与 OpenAI 一致，均使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
- 请求体: {model, messages, stream}
"""

from typing import Optional

from llm_relay.domain.exceptions import ValidationError
from llm_relay.domain.models import ChatRequest
from llm_relay.providers.base import PreparedCall
from llm_relay.providers.http_client import UpstreamClient
from llm_relay.providers.registry import BackendConfig


class OpenAICompatibleBackend:
    """OpenAI 兼容后端。

    require_api_key 为 True 时（如 DeepSeek），未配置密钥直接走 ValidationError；
    本地运行时通常不需要密钥。
    """

    def __init__(
        self,
        config: BackendConfig,
        client: UpstreamClient,
        base_url: Optional[str] = None,
        require_api_key: bool = False,
    ):
        self.name = config.name
        self.config = config
        self.client = client
        self._base_url = base_url or config.base_url
        self._require_api_key = require_api_key

    @property
    def endpoint(self) -> str:
        return f"{self._base_url.rstrip('/')}{self.config.chat_path}"

    def prepare(self, req: ChatRequest) -> PreparedCall:
        if self._require_api_key and not self.client.has_api_key:
            raise ValidationError(
                code="MISSING_API_KEY",
                message=f"{self.name.upper()}_API_KEY not set",
                http_status=500,
            )
        body = {
            "model": req.model or self.config.default_model,
            "messages": [m.to_payload() for m in req.messages],
            "stream": req.stream,
        }
        return PreparedCall(endpoint=self.endpoint, body=body)
