"""LLM Relay 顶层包。

该包把调用方的聊天请求转发到三个上游后端（本地模型运行时、DeepSeek、RagFlow），
包括配置加载、领域模型、上游 HTTP 客户端、响应归一化、流式中继与 HTTP 接口。
"""

__version__ = "0.1.0"
