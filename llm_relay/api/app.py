from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from llm_relay import __version__
from llm_relay.api.middleware import RequestLoggingMiddleware
from llm_relay.api.routes import build_relays, router
from llm_relay.config.settings import RelaySettings, settings as default_settings
from llm_relay.infrastructure.logging.logger import logger


def create_app(
    settings: Optional[RelaySettings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """创建 FastAPI 应用。

    http_client 为空时，在 lifespan 中创建一个共享连接池给全部后端使用，
    退出时关闭；传入时（例如测试）直接使用调用方的客户端。
    """
    cfg = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if http_client is not None:
            yield
            return
        async with httpx.AsyncClient(timeout=cfg.http_timeout, trust_env=False) as http:
            app.state.relays = build_relays(cfg, http)
            logger.info("Upstream connection pool opened", extra={"extra": {"timeout": cfg.http_timeout}})
            yield
        app.state.relays = None
        logger.info("Upstream connection pool closed")

    app = FastAPI(title="LLM Relay", version=__version__, lifespan=lifespan)
    app.state.settings = cfg
    app.state.relays = build_relays(cfg, http_client) if http_client is not None else None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(router)
    return app


app = create_app()
