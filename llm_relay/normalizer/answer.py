"""上游响应解析。

上游 JSON 先按各后端的结构校验（pydantic 模型），再取出回答文本：

- openai: choices[0].message.content（DeepSeek、本地运行时的 OpenAI 兼容接口）
- ragflow: data.answer，code 非 0 视为上游错误

流式场景下每一行也是一个 JSON 文档：

- delta_content: OpenAI 增量块 choices[0].delta.content，无内容的增量返回 None
- checked_line: RagFlow 行原样转发，只拦截带内错误

字段缺失或类型不符一律抛 MalformedResponse，绝不退化为空字符串。
"""

import json
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from llm_relay.domain.exceptions import MalformedResponse, UpstreamApiError


ResponseShape = Literal["openai", "ragflow"]


class _Shape(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _CompletionMessage(_Shape):
    content: StrictStr


class _CompletionChoice(_Shape):
    message: _CompletionMessage


class OpenAICompletion(_Shape):
    choices: List[_CompletionChoice] = Field(min_length=1)


class _StreamDelta(_Shape):
    content: Optional[StrictStr] = None


class _StreamChoice(_Shape):
    delta: _StreamDelta = Field(default_factory=_StreamDelta)


class OpenAIStreamChunk(_Shape):
    # 末尾的 usage 块 choices 为空
    choices: List[_StreamChoice] = Field(default_factory=list)


class RagflowAnswerData(_Shape):
    answer: StrictStr
    reference: Any = None
    id: Optional[str] = None
    session_id: Optional[str] = None


class RagflowCompletion(_Shape):
    code: StrictInt
    message: Optional[str] = None
    data: Optional[RagflowAnswerData] = None


def decode_document(raw_body: str) -> Dict[str, Any]:
    """把原始响应体解析为 JSON 对象。"""

    try:
        data = json.loads(raw_body)
    except json.JSONDecodeError as e:
        raise MalformedResponse(
            code="MALFORMED_RESPONSE",
            message=f"upstream body is not JSON: {e.msg}",
            body=raw_body[:500],
        )
    if not isinstance(data, dict):
        raise MalformedResponse(
            code="MALFORMED_RESPONSE",
            message=f"upstream body is a JSON {type(data).__name__}, expected an object",
        )
    return data


def check_error_document(data: Mapping[str, Any], source: str = "upstream", body: Optional[str] = None) -> None:
    """2xx 响应体（或流中的一行）里也可能是错误：OpenAI 风格的 error 字段，或 RagFlow 风格的非零 code。"""

    error = data.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise UpstreamApiError(
            code="UPSTREAM_API_ERROR",
            message=message or f"{source} returned an error payload",
            http_status=502,
            body=body,
        )
    code = data.get("code")
    if isinstance(code, int) and not isinstance(code, bool) and code != 0:
        raise UpstreamApiError(
            code="UPSTREAM_API_ERROR",
            message=data.get("message") or f"{source} returned code {code}",
            http_status=502,
            upstream_code=code,
            body=body,
        )


def extract_answer(raw_body: Union[str, Mapping[str, Any]], shape: ResponseShape = "openai") -> str:
    """从上游响应中取出回答文本。"""

    document = decode_document(raw_body) if isinstance(raw_body, str) else dict(raw_body)
    try:
        if shape == "openai":
            return OpenAICompletion.model_validate(document).choices[0].message.content
        if shape == "ragflow":
            return _ragflow_answer(RagflowCompletion.model_validate(document))
    except PydanticValidationError as e:
        raise MalformedResponse(
            code="MALFORMED_RESPONSE",
            message=f"unexpected {shape} response shape: {_first_error(e)}",
        )
    raise ValueError(f"Unknown response shape: {shape!r}")


def delta_content(line: str) -> Optional[str]:
    """取出 OpenAI 流式增量块中的文本；只有 role 或 finish_reason 的增量返回 None。"""

    document = decode_document(line)
    check_error_document(document, body=line)
    try:
        chunk = OpenAIStreamChunk.model_validate(document)
    except PydanticValidationError as e:
        raise MalformedResponse(
            code="MALFORMED_RESPONSE",
            message=f"unexpected openai stream chunk: {_first_error(e)}",
        )
    if not chunk.choices:
        return None
    return chunk.choices[0].delta.content or None


def checked_line(line: str) -> Optional[str]:
    if line.startswith("{"):
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            return line
        if isinstance(data, dict):
            check_error_document(data, body=line)
    return line


def _ragflow_answer(completion: RagflowCompletion) -> str:
    if completion.code != 0:
        raise UpstreamApiError(
            code="UPSTREAM_API_ERROR",
            message=completion.message or f"ragflow returned code {completion.code}",
            http_status=502,
            upstream_code=completion.code,
        )
    if completion.data is None:
        raise MalformedResponse(code="MALFORMED_RESPONSE", message="unexpected ragflow response shape: data is missing")
    return completion.data.answer


def _first_error(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc or '<root>'}: {err.get('msg')}"
