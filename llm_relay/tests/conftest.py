import asyncio
from typing import Callable, Iterable, List, Optional

import httpx
import pytest


class TrackedStream(httpx.AsyncByteStream):
    """上游响应体替身：按块产出，可在中途挂起或报错，并记录是否被关闭。"""

    def __init__(
        self,
        chunks: Iterable[str],
        fail_with: Optional[Exception] = None,
        hang_after: Optional[int] = None,
    ):
        self._chunks = list(chunks)
        self._fail_with = fail_with
        self._hang_after = hang_after
        self.sent = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            if self._hang_after is not None and self.sent >= self._hang_after:
                await asyncio.Event().wait()
            self.sent += 1
            yield chunk.encode("utf-8")
            await asyncio.sleep(0)
        if self._fail_with is not None:
            raise self._fail_with

    async def aclose(self) -> None:
        self.closed = True


class Recorder:
    """记录发往上游的请求。"""

    def __init__(self):
        self.requests: List[httpx.Request] = []

    def __call__(self, handler: Callable[[httpx.Request], httpx.Response]):
        def _handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        return _handler


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def mock_http(recorder):
    """根据 handler 构造一个走 MockTransport 的共享 AsyncClient。"""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(recorder(handler)))

    return factory


@pytest.fixture
def streamed():
    """构造流式上游响应；返回 (response, stream)，stream 可用于断言连接是否被关闭。"""

    def factory(chunks: Iterable[str], status_code: int = 200, **kwargs):
        stream = TrackedStream(chunks, **kwargs)
        response = httpx.Response(status_code, headers={"content-type": "text/event-stream"}, stream=stream)
        return response, stream

    return factory


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def arun():
    """在新事件循环中执行协程（测试保持同步函数风格）。"""

    return run
