"""中继端点。

把归一化层的结果桥接给调用方：

- complete: call_once -> extract_answer，同步返回 ChatResponse；
  任何 RelayError 都按策略转换为失败结果，不向外抛出。
- open_stream: call_stream -> normalize_stream，逐段转发。
  先等待第一段再返回，这样首段之前的失败（包括 2xx 流里的带内错误文档）
  仍可按策略给出合适的状态码；开始输出后的失败只追加一行错误说明，然后结束流。
  调用方断开或关闭迭代器时，关闭动作沿归一化层传回上游并释放连接。
"""

from contextlib import aclosing
from dataclasses import replace
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional

from llm_relay.domain.exceptions import RelayError
from llm_relay.domain.models import ChatRequest, ChatResponse
from llm_relay.infrastructure.logging.logger import logger
from llm_relay.normalizer import decode_document, extract_answer, normalize_stream
from llm_relay.providers.base import Backend
from llm_relay.relay.policy import ErrorPolicy, failure_response, stream_trailer


DisconnectProbe = Callable[[], Awaitable[bool]]


class RelayStream:
    """open_stream 返回的一次性异步迭代器。

    上游连接在返回前就已打开。aclose() 无论迭代是否开始都会关闭上游，
    调用方放弃响应时必须调用它。
    """

    def __init__(self, relayed: AsyncGenerator[str, None], upstream: AsyncGenerator[str, None]):
        self._relayed = relayed
        self._upstream = upstream

    def __aiter__(self) -> "RelayStream":
        return self

    async def __anext__(self) -> str:
        return await self._relayed.__anext__()

    async def aclose(self) -> None:
        await self._relayed.aclose()
        await self._upstream.aclose()


class RelayEndpoint:
    """单个后端 + 单一错误策略的中继入口。"""

    def __init__(self, backend: Backend, policy: ErrorPolicy):
        self.backend = backend
        self.policy = policy

    async def complete(self, req: ChatRequest) -> ChatResponse:
        """执行一次非流式中继。"""

        try:
            call = self.backend.prepare(replace(req, stream=False))
            raw_body = await self.backend.client.call_once(call.endpoint, call.body)
            document = decode_document(raw_body)
            answer = extract_answer(document, self.backend.config.response_shape)
        except RelayError as e:
            self._log_failure(e, stream=False)
            return failure_response(e, self.policy)
        return ChatResponse.success(answer, raw=document)

    async def open_stream(
        self,
        req: ChatRequest,
        is_disconnected: Optional[DisconnectProbe] = None,
    ) -> RelayStream:
        """建立流式中继，返回逐段（带分隔符）的异步迭代器。

        Raises:
            RelayError: 在产出第一段之前发生的任何失败。
        """

        config = self.backend.config
        try:
            call = self.backend.prepare(replace(req, stream=True))
            lines = normalize_stream(
                self.backend.client.call_stream(call.endpoint, call.body),
                framing=config.framing,
                is_terminal=config.is_terminal,
                project=config.project,
            )
            first = await lines.__anext__()
        except StopAsyncIteration:
            first = None
        except RelayError as e:
            self._log_failure(e, stream=True)
            raise
        return RelayStream(self._relay(first, lines, is_disconnected), lines)

    async def _relay(
        self,
        first: Optional[str],
        lines: AsyncGenerator[str, None],
        is_disconnected: Optional[DisconnectProbe],
    ) -> AsyncIterator[str]:
        delimiter = self.backend.config.delimiter
        relayed = 0
        async with aclosing(lines):
            try:
                if first is not None:
                    relayed += 1
                    yield first + delimiter
                async for line in lines:
                    if is_disconnected is not None and await is_disconnected():
                        logger.info(
                            f"Caller disconnected, closing {self.backend.name} stream",
                            extra={"extra": {"backend": self.backend.name, "relayed_lines": relayed}},
                        )
                        return
                    relayed += 1
                    yield line + delimiter
            except RelayError as e:
                self._log_failure(e, stream=True, relayed_lines=relayed)
                trailer = stream_trailer(e, self.policy)
                # 无分隔符的文本流，错误说明另起一行
                yield trailer if delimiter or not relayed else "\n" + trailer

    def _log_failure(self, exc: RelayError, stream: bool, **context) -> None:
        logger.error(
            f"Relay failed: {exc.message}",
            extra={"extra": {
                "backend": self.backend.name,
                "policy": self.policy.value,
                "stream": stream,
                "error": exc.code,
                "http_status": exc.http_status,
                **context,
            }},
        )
