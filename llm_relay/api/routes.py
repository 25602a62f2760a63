from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import httpx
from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import Response

from llm_relay.api import responses
from llm_relay.api.schemas import ChatMessageIn, RagflowChatRequest
from llm_relay.domain.exceptions import RelayError
from llm_relay.domain.models import ChatMessage, ChatRequest, default_conversation
from llm_relay.providers import build_backends
from llm_relay.relay import ErrorPolicy, RelayEndpoint

router = APIRouter()


@dataclass
class Relays:
    """每个接口绑定的中继端点；错误策略在这里逐个显式指定。"""

    local: RelayEndpoint
    deepseek: RelayEndpoint
    ragflow: RelayEndpoint


def build_relays(settings=None, http: Optional[httpx.AsyncClient] = None) -> Relays:
    backends = build_backends(settings, http)
    return Relays(
        local=RelayEndpoint(backends["local"], ErrorPolicy.HTTP_STATUS),
        # 兼容既有 DeepSeek 调用方：失败也返回 200 + 错误文本
        deepseek=RelayEndpoint(backends["deepseek"], ErrorPolicy.EMBED_IN_BODY),
        ragflow=RelayEndpoint(backends["ragflow"], ErrorPolicy.HTTP_STATUS),
    )


def get_relays(request: Request) -> Relays:
    relays = getattr(request.app.state, "relays", None)
    if relays is None:
        relays = build_relays(request.app.state.settings)
        request.app.state.relays = relays
    return relays


async def _relay_stream(relay: RelayEndpoint, build, request: Request) -> Response:
    try:
        lines = await relay.open_stream(build(), is_disconnected=request.is_disconnected)
    except RelayError as e:
        return responses.render_failure(e, relay.policy)
    return responses.stream(lines)


async def _relay_once(relay: RelayEndpoint, build) -> Response:
    try:
        req = build()
    except RelayError as e:
        return responses.render_failure(e, relay.policy)
    return responses.render(await relay.complete(req), relay.policy)


@router.get("/health")
def health() -> dict:
    return {"ok": True}


@router.get("/ai/chat")
async def ai_chat(
    request: Request,
    message: str = Query(...),
    relays: Relays = Depends(get_relays),
) -> Response:
    """本地模型运行时流式对话，逐行返回纯文本。"""

    def build() -> ChatRequest:
        return ChatRequest(model="", messages=[ChatMessage(role="user", content=message)], stream=True)

    return await _relay_stream(relays.local, build, request)


@router.post("/api/deepseek/chat")
async def deepseek_chat(
    request: Request,
    messages: List[ChatMessageIn] = Body(...),
    model: Optional[str] = Query(None),
    stream: bool = Query(False),
    relays: Relays = Depends(get_relays),
) -> Response:
    """通用 DeepSeek 调用：完整消息列表，可选模型与流式。"""

    def build() -> ChatRequest:
        return ChatRequest(
            model=model or "",
            messages=[ChatMessage(role=m.role, content=m.content) for m in messages],
            stream=stream,
        )

    if stream:
        return await _relay_stream(relays.deepseek, build, request)
    return await _relay_once(relays.deepseek, build)


@router.get("/api/deepseek/chat/simple")
async def deepseek_simple_chat(
    message: str = Query(...),
    relays: Relays = Depends(get_relays),
) -> Response:
    """简单对话：只传一句话，内部补齐 system + user 消息。"""

    def build() -> ChatRequest:
        return ChatRequest(model="", messages=default_conversation(message))

    return await _relay_once(relays.deepseek, build)


@router.post("/api/ragflow/chat")
async def ragflow_chat(
    request: Request,
    payload: RagflowChatRequest,
    relays: Relays = Depends(get_relays),
) -> Response:
    """RagFlow 对话：非流式返回上游 JSON，流式逐行转发。"""

    def build() -> ChatRequest:
        return ChatRequest(
            model="",
            messages=[ChatMessage(role="user", content=payload.question)],
            stream=payload.stream,
            extra={"session_id": payload.session_id, "user_id": payload.user_id},
        )

    if payload.stream:
        return await _relay_stream(relays.ragflow, build, request)
    return await _relay_once(relays.ragflow, build)
