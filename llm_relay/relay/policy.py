"""调用方可见的错误呈现策略。

两类接口对失败的约定不同，必须逐个接口显式选择：

- EMBED_IN_BODY: 始终返回 200，响应体是一段可读的错误文本（DeepSeek 风格接口）。
- HTTP_STATUS: 返回分类后的 HTTP 状态码与结构化 JSON 错误体（RagFlow 风格接口）。
"""

import json
from enum import Enum
from typing import Any, Dict

from llm_relay.domain.exceptions import RelayError, UpstreamApiError
from llm_relay.domain.models import ChatResponse


class ErrorPolicy(str, Enum):
    EMBED_IN_BODY = "embed_in_body"
    HTTP_STATUS = "http_status"


def embedded_text(exc: RelayError) -> str:
    """EMBED_IN_BODY 策略下的错误文本。"""

    if isinstance(exc, UpstreamApiError):
        return f"API调用失败: HTTP {exc.http_status}: {exc.message}"
    return f"调用出错: {exc.message}"


def error_body(exc: RelayError) -> Dict[str, Any]:
    """HTTP_STATUS 策略下的结构化错误体，字段与 RagFlow 响应保持一致。"""

    return {
        "code": exc.extra.get("upstream_code", exc.http_status),
        "message": exc.message,
        "data": None,
    }


def failure_response(exc: RelayError, policy: ErrorPolicy) -> ChatResponse:
    if policy is ErrorPolicy.EMBED_IN_BODY:
        return ChatResponse.failure(error_code=exc.http_status, error_message=embedded_text(exc))
    return ChatResponse.failure(error_code=exc.http_status, error_message=exc.message, raw=error_body(exc))


def stream_trailer(exc: RelayError, policy: ErrorPolicy) -> str:
    """流已开始输出后发生错误时，追加在末尾的一行错误说明。"""

    if policy is ErrorPolicy.EMBED_IN_BODY:
        return embedded_text(exc) + "\n"
    return json.dumps(error_body(exc), ensure_ascii=False) + "\n"
