"""统一中继异常模型。

上游客户端与归一化层抛出的错误都继承自 RelayError，
由中继端点统一分类，再按各接口约定的策略转换为调用方可见的结果。
"""


class RelayError(Exception):
    """中继异常基类。

    Attributes:
        code: 机器可读错误码（如 "UPSTREAM_API_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时使用的状态码，默认 502。
        extra: 其他补充字段（例如 upstream_code、body 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 502, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(RelayError):
    """网络层错误：连接失败、超时、TLS 握手失败、连接中断等。"""


class UpstreamApiError(RelayError):
    """上游返回非 2xx，或 2xx 响应体中携带了可识别的错误。"""


class MalformedResponse(RelayError):
    """上游响应 JSON 结构不符合预期（字段缺失或类型错误）。"""


class IncompleteStream(RelayError):
    """流在一行中途结束，残留的半行内容已被丢弃。"""


class ValidationError(RelayError):
    """参数或配置校验失败。"""

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        super().__init__(code, message, http_status, **extra)
