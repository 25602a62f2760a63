"""中继端点与错误呈现策略。"""

from llm_relay.relay.endpoint import RelayEndpoint, RelayStream
from llm_relay.relay.policy import ErrorPolicy, embedded_text, error_body, failure_response, stream_trailer

__all__ = [
    "ErrorPolicy",
    "RelayEndpoint",
    "RelayStream",
    "embedded_text",
    "error_body",
    "failure_response",
    "stream_trailer",
]
