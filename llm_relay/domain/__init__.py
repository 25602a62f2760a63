"""领域层模型与异常。

包含：
- models: 统一的 ChatMessage / ChatRequest / ChatResponse / StreamChunk 模型。
- exceptions: 中继异常类型定义。
"""
