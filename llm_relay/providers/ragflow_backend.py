"""RagFlow 后端适配器。

- URL: 配置中的完整聊天接口地址（/api/v1/chats/{chat_id}/completions）
- 认证: Authorization: Bearer <api_key>
- 请求体: {question, stream, session_id?, user_id?}
- 约定 code=0 代表成功；流式结束时发送 {"code": 0, "data": false}
"""

from typing import Any, Dict, Optional

from llm_relay.domain.exceptions import ValidationError
from llm_relay.domain.models import ChatRequest
from llm_relay.providers.base import PreparedCall
from llm_relay.providers.http_client import UpstreamClient
from llm_relay.providers.registry import BackendConfig

# 允许透传给 RagFlow 的可选上下文字段
PASSTHROUGH_FIELDS = ("session_id", "user_id")


class RagflowBackend:
    def __init__(self, config: BackendConfig, client: UpstreamClient, api_url: Optional[str] = None):
        self.name = config.name
        self.config = config
        self.client = client
        self._api_url = api_url

    def prepare(self, req: ChatRequest) -> PreparedCall:
        if not self._api_url:
            raise ValidationError(code="MISSING_API_URL", message="RAGFLOW_API_URL not set", http_status=500)
        if not self.client.has_api_key:
            raise ValidationError(code="MISSING_API_KEY", message="RAGFLOW_API_KEY not set", http_status=500)
        body: Dict[str, Any] = {"question": req.last_user_content, "stream": req.stream}
        for key in PASSTHROUGH_FIELDS:
            value = req.extra.get(key)
            if value is not None:
                body[key] = value
        return PreparedCall(endpoint=self._api_url, body=body)
