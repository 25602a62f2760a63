"""上游响应归一化层。

- answer: 非流式 JSON -> 回答文本；流式行 -> 增量文本。
- stream: 原始文本块序列 -> 逐行文本序列。
"""

from llm_relay.normalizer.answer import (
    ResponseShape,
    check_error_document,
    checked_line,
    decode_document,
    delta_content,
    extract_answer,
)
from llm_relay.normalizer.stream import (
    Framing,
    LineAssembler,
    LineProjector,
    any_marker,
    is_done_marker,
    is_ragflow_end_marker,
    never_terminal,
    normalize_stream,
)

__all__ = [
    "Framing",
    "LineAssembler",
    "LineProjector",
    "ResponseShape",
    "any_marker",
    "check_error_document",
    "checked_line",
    "decode_document",
    "delta_content",
    "extract_answer",
    "is_done_marker",
    "is_ragflow_end_marker",
    "never_terminal",
    "normalize_stream",
]
