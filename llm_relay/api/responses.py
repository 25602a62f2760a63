"""把中继结果按接口策略转换为 HTTP 响应。"""

from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from llm_relay.domain.exceptions import RelayError
from llm_relay.domain.models import ChatResponse
from llm_relay.relay import ErrorPolicy, RelayStream, failure_response

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",  # 禁用Nginx缓冲
}


class RelayStreamingResponse(StreamingResponse):
    """发送结束后（包括客户端在响应体开始前就断开）总是关闭中继流，释放上游连接。"""

    body_iterator: RelayStream

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.body_iterator.aclose()


def render(resp: ChatResponse, policy: ErrorPolicy) -> Response:
    if policy is ErrorPolicy.EMBED_IN_BODY:
        # 成功与失败都是 200 + 纯文本
        return PlainTextResponse(resp.answer if resp.ok else resp.error_message or "")
    if resp.ok:
        return JSONResponse(resp.raw)
    return JSONResponse(resp.raw, status_code=resp.error_code or 502)


def render_failure(exc: RelayError, policy: ErrorPolicy) -> Response:
    return render(failure_response(exc, policy), policy)


def stream(lines: RelayStream) -> RelayStreamingResponse:
    return RelayStreamingResponse(lines, media_type=STREAM_MEDIA_TYPE, headers=STREAM_HEADERS)
