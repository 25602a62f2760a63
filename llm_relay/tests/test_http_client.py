import json

import httpx
import pytest

from llm_relay.domain.exceptions import TransportError, UpstreamApiError
from llm_relay.providers.http_client import UpstreamClient

URL = "https://upstream.test/chat/completions"


def test_call_once_returns_raw_body(mock_http, recorder, arun):
    body = {"choices": [{"message": {"role": "assistant", "content": "ok"}}]}
    http = mock_http(lambda req: httpx.Response(200, json=body))
    client = UpstreamClient("deepseek", api_key="sk-0123456789", http=http)

    raw = arun(client.call_once(URL, {"model": "m", "messages": [], "stream": False}))

    assert json.loads(raw) == body
    sent = recorder.requests[0]
    assert sent.headers["authorization"] == "Bearer sk-0123456789"
    assert json.loads(sent.content) == {"model": "m", "messages": [], "stream": False}


def test_call_once_without_key_sends_no_auth_header(mock_http, recorder, arun):
    http = mock_http(lambda req: httpx.Response(200, text="{}"))
    client = UpstreamClient("local", http=http)
    arun(client.call_once(URL, {}))
    assert "authorization" not in recorder.requests[0].headers


def test_call_once_non_2xx_is_api_error(mock_http, arun):
    http = mock_http(lambda req: httpx.Response(401, text='{"error": "bad key"}'))
    client = UpstreamClient("deepseek", api_key="sk-0123456789", http=http)

    with pytest.raises(UpstreamApiError) as exc_info:
        arun(client.call_once(URL, {}))

    assert exc_info.value.http_status == 401
    assert exc_info.value.extra["body"] == '{"error": "bad key"}'


def test_call_once_error_payload_with_2xx(mock_http, arun):
    http = mock_http(lambda req: httpx.Response(200, json={"error": {"message": "model not found"}}))
    client = UpstreamClient("deepseek", http=http)

    with pytest.raises(UpstreamApiError) as exc_info:
        arun(client.call_once(URL, {}))

    assert exc_info.value.http_status == 502
    assert exc_info.value.message == "model not found"


def test_call_once_nonzero_code_with_2xx(mock_http, arun):
    http = mock_http(lambda req: httpx.Response(200, json={"code": 102, "message": "chat not found"}))
    client = UpstreamClient("ragflow", http=http)

    with pytest.raises(UpstreamApiError) as exc_info:
        arun(client.call_once(URL, {}))

    assert exc_info.value.extra["upstream_code"] == 102
    assert exc_info.value.message == "chat not found"


def test_call_once_connect_error_is_transport_error(mock_http, arun):
    def handler(req):
        raise httpx.ConnectError("connection refused", request=req)

    client = UpstreamClient("local", http=mock_http(handler))

    with pytest.raises(TransportError) as exc_info:
        arun(client.call_once(URL, {}))

    assert exc_info.value.http_status == 502
    assert exc_info.value.code == "NETWORK_ERROR"


def test_call_once_timeout_is_transport_error(mock_http, arun):
    def handler(req):
        raise httpx.ReadTimeout("timed out", request=req)

    client = UpstreamClient("local", http=mock_http(handler))

    with pytest.raises(TransportError) as exc_info:
        arun(client.call_once(URL, {}))

    assert exc_info.value.http_status == 504


def test_call_once_uses_private_client_when_no_pool(monkeypatch, arun):
    created = []
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        created.append(kwargs)
        return real_client(transport=httpx.MockTransport(lambda req: httpx.Response(200, text="{}")), **kwargs)

    monkeypatch.setattr("httpx.AsyncClient", factory)
    client = UpstreamClient("local", timeout=5.0)

    assert arun(client.call_once(URL, {})) == "{}"
    assert created == [{"timeout": 5.0, "trust_env": False}]


def test_call_stream_yields_chunks_in_order(mock_http, streamed, recorder, arun):
    response, stream = streamed(["data: a\n", "data: b", "\n\n"])
    client = UpstreamClient("deepseek", http=mock_http(lambda req: response))

    async def collect():
        return [chunk async for chunk in client.call_stream(URL, {"stream": True})]

    assert arun(collect()) == ["data: a\n", "data: b", "\n\n"]
    assert stream.closed
    assert "text/event-stream" in recorder.requests[0].headers["accept"]


def test_call_stream_non_2xx_raises_before_any_chunk(mock_http, arun):
    http = mock_http(lambda req: httpx.Response(503, text="overloaded"))
    client = UpstreamClient("deepseek", http=http)

    async def collect():
        return [chunk async for chunk in client.call_stream(URL, {})]

    with pytest.raises(UpstreamApiError) as exc_info:
        arun(collect())

    assert exc_info.value.http_status == 503
    assert exc_info.value.message == "overloaded"


def test_call_stream_read_error_is_transport_error(mock_http, streamed, arun):
    response, _ = streamed(["data: a\n"], fail_with=httpx.ReadError("reset by peer"))
    client = UpstreamClient("deepseek", http=mock_http(lambda req: response))
    received = []

    async def collect():
        async for chunk in client.call_stream(URL, {}):
            received.append(chunk)

    with pytest.raises(TransportError):
        arun(collect())
    assert received == ["data: a\n"]


def test_call_stream_close_releases_connection(mock_http, streamed, arun):
    response, stream = streamed(["one\n", "two\n", "three\n"])
    client = UpstreamClient("local", http=mock_http(lambda req: response))

    async def first_then_close():
        chunks = client.call_stream(URL, {})
        first = await chunks.__anext__()
        await chunks.aclose()
        return first

    assert arun(first_then_close()) == "one\n"
    assert stream.closed
    assert stream.sent == 1
