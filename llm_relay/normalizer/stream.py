"""流式响应归一化。

上游的流式输出有两种分帧方式：标准 SSE（`data: {...}` + 空行）与裸 JSON 行。
这里把任意切分的原始文本块重新组装成逻辑行，并统一成同一种输出约定：

- 跨块拼接半行，只在遇到换行时产出完整的一行；
- 每行去掉首尾空白，丢弃空行；
- SSE 分帧下去掉 `data:` 前缀，丢弃注释行与 event/id/retry 字段行；
- 遇到后端的带内结束标记即结束，标记本身不输出；
- 可选地按后端把每行投影为要转发的内容（如 OpenAI 增量文本）；
- 上游在一行中途关闭时丢弃残留内容，并抛出 IncompleteStream。

输出顺序与块到达顺序严格一致，不做任何重排。
"""

import json
from contextlib import aclosing
from enum import Enum
from typing import AsyncGenerator, AsyncIterator, Callable, List, Optional

from llm_relay.domain.exceptions import IncompleteStream
from llm_relay.domain.models import StreamChunk


TerminalDetector = Callable[[str], bool]
LineProjector = Callable[[str], Optional[str]]

SSE_DATA_PREFIX = "data:"
SSE_FIELD_PREFIXES = ("event:", "id:", "retry:")


class Framing(str, Enum):
    SSE = "sse"
    JSON_LINES = "json_lines"


def is_done_marker(line: str) -> bool:
    """OpenAI 兼容接口在 SSE 末尾发送的 `[DONE]`。"""

    return line == "[DONE]"


def is_ragflow_end_marker(line: str) -> bool:
    """RagFlow 以 `{"code": 0, "data": false}` 表示流结束。"""

    if not line.startswith("{"):
        return False
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return False
    if not isinstance(data, dict):
        return False
    code = data.get("code")
    return type(code) is int and code == 0 and data.get("data") is False


def any_marker(line: str) -> bool:
    return is_done_marker(line) or is_ragflow_end_marker(line)


def never_terminal(line: str) -> bool:
    return False


class LineAssembler:
    """把任意切分的文本块组装成逻辑行。"""

    def __init__(self, framing: Framing = Framing.SSE, is_terminal: TerminalDetector = any_marker):
        self._framing = framing
        self._is_terminal = is_terminal
        self._pending = ""

    @property
    def pending(self) -> str:
        """尚未遇到换行的残留内容。"""

        return self._pending

    def feed(self, text: str) -> List[StreamChunk]:
        *complete, self._pending = (self._pending + text).split("\n")
        chunks: List[StreamChunk] = []
        for raw in complete:
            line = self._clean(raw)
            if line is None:
                continue
            chunks.append(StreamChunk(text=line, is_terminal=self._is_terminal(line)))
        return chunks

    def _clean(self, raw: str) -> Optional[str]:
        line = raw.strip()
        if self._framing is Framing.SSE:
            if line.startswith(":") or line.startswith(SSE_FIELD_PREFIXES):
                return None
            if line.startswith(SSE_DATA_PREFIX):
                line = line[len(SSE_DATA_PREFIX):].strip()
        return line or None


async def normalize_stream(
    chunks: AsyncGenerator[str, None],
    framing: Framing = Framing.SSE,
    is_terminal: TerminalDetector = any_marker,
    project: Optional[LineProjector] = None,
) -> AsyncIterator[str]:
    """消费上游原始文本块，逐行产出归一化后的文本。

    project 把一行转换成要转发的内容（例如取出增量文本），返回 None 表示跳过该行；
    它也可以抛出 RelayError 拒绝带内错误。
    退出（正常结束、遇到结束标记、被 aclose 或被取消）时总会关闭上游生成器。
    """

    assembler = LineAssembler(framing, is_terminal)
    async with aclosing(chunks):
        async for text in chunks:
            for chunk in assembler.feed(text):
                if chunk.is_terminal:
                    return
                out = chunk.text if project is None else project(chunk.text)
                if out is not None:
                    yield out
    if assembler.pending.strip():
        raise IncompleteStream(
            code="INCOMPLETE_STREAM",
            message="upstream closed the stream in the middle of a line",
            discarded_chars=len(assembler.pending),
        )
