"""上游 HTTP 客户端。

本模块负责：

1. 以 JSON 方式 POST 到上游聊天接口（一次性或流式）。
2. 把网络层异常与上游 API 异常区分开：
   - httpx.RequestError（DNS、连接、TLS、超时、连接中断）-> TransportError；
   - 非 2xx，或 2xx 但响应体带有可识别错误 -> UpstreamApiError。
3. 流式调用返回一次性的异步生成器，关闭生成器即关闭底层连接。

连接池（共享的 httpx.AsyncClient）是唯一跨请求共享的状态，由外部注入；
未注入时每次调用各自创建并关闭一个客户端。
"""

import json
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Optional

import httpx

from llm_relay.domain.exceptions import TransportError, UpstreamApiError
from llm_relay.infrastructure.logging.logger import logger
from llm_relay.normalizer.answer import check_error_document

# 诊断信息中保留的上游响应体长度
BODY_PREVIEW = 500


class UpstreamClient:
    """某一个上游后端的 HTTP 调用入口。

    - name: 后端名称（供日志使用）。
    - call_once: 阻塞式调用，返回完整响应体文本。
    - call_stream: 流式调用，逐块产出原始文本。
    """

    def __init__(
        self,
        name: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.name = name
        self._api_key = api_key
        self._timeout = timeout
        self._http = http

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    def headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        if extra:
            headers.update(extra)
        return headers

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(timeout=self._timeout, trust_env=False) as client:
            yield client

    async def call_once(
        self,
        endpoint: str,
        body: Dict[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """执行一次非流式调用，返回原始响应体。"""

        started = time.perf_counter()
        try:
            async with self._client() as client:
                resp = await client.post(endpoint, json=body, headers=self.headers(headers))
        except httpx.RequestError as e:
            raise _transport_error(self.name, endpoint, e)
        self._log_response(endpoint, resp.status_code, started, stream=False)
        if not resp.is_success:
            raise _api_error(self.name, resp.status_code, resp.text)
        text = resp.text
        _raise_for_error_payload(self.name, text)
        return text

    async def call_stream(
        self,
        endpoint: str,
        body: Dict[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> AsyncIterator[str]:
        """执行一次流式调用，按到达顺序逐块 yield 解码后的文本。

        生成器不可重入；调用方 aclose() 或任务被取消时，
        会退出 httpx 的 stream 上下文并释放连接。
        """

        started = time.perf_counter()
        request_headers = self.headers({"Accept": "text/event-stream, application/json"})
        if headers:
            request_headers.update(headers)
        try:
            async with self._client() as client:
                async with client.stream("POST", endpoint, json=body, headers=request_headers) as resp:
                    self._log_response(endpoint, resp.status_code, started, stream=True)
                    if not resp.is_success:
                        await resp.aread()
                        raise _api_error(self.name, resp.status_code, resp.text)
                    async for chunk in resp.aiter_text():
                        if chunk:
                            yield chunk
        except httpx.RequestError as e:
            raise _transport_error(self.name, endpoint, e)
        finally:
            logger.debug(
                f"Upstream stream closed: {self.name}",
                extra={"extra": {"backend": self.name, "url": endpoint}},
            )

    def _log_response(self, endpoint: str, status: int, started: float, stream: bool) -> None:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Upstream responded: {self.name} HTTP {status}",
            extra={"extra": {
                "backend": self.name,
                "url": endpoint,
                "status": status,
                "stream": stream,
                "elapsed_ms": elapsed_ms,
            }},
        )


def _transport_error(name: str, endpoint: str, e: httpx.RequestError) -> TransportError:
    if isinstance(e, httpx.TimeoutException):
        return TransportError(
            code="UPSTREAM_TIMEOUT",
            message=f"{name} request timed out: {e}",
            http_status=504,
            url=endpoint,
        )
    return TransportError(
        code="NETWORK_ERROR",
        message=f"{name} request failed: {str(e) or type(e).__name__}",
        http_status=502,
        url=endpoint,
    )


def _api_error(name: str, status: int, text: str) -> UpstreamApiError:
    return UpstreamApiError(
        code="UPSTREAM_API_ERROR",
        message=text[:BODY_PREVIEW] or f"{name} returned HTTP {status}",
        http_status=status,
        body=text,
    )


def _raise_for_error_payload(name: str, text: str) -> None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return
    if isinstance(data, dict):
        check_error_document(data, source=name, body=text)
