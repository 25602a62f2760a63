"""上游后端集成层。

该包下的模块负责：
- 定义后端抽象接口 (base)。
- 维护后端默认配置 (registry)。
- 执行上游 HTTP 调用 (http_client)。
- 提供各后端的请求转换 (openai_backend、ragflow_backend)。
"""

from dataclasses import replace
from typing import Dict, Optional

import httpx

from llm_relay.config.settings import settings as default_settings
from llm_relay.providers.base import Backend, PreparedCall
from llm_relay.providers.http_client import UpstreamClient
from llm_relay.providers.openai_backend import OpenAICompatibleBackend
from llm_relay.providers.ragflow_backend import RagflowBackend
from llm_relay.providers.registry import get_backend_config


def create_backend(name: str, settings=None, http: Optional[httpx.AsyncClient] = None) -> Backend:
    """根据名称创建后端实例；http 为共享连接池，可为空。"""

    cfg = settings or default_settings
    config = get_backend_config(name)
    if config.name == "deepseek":
        client = UpstreamClient(config.name, cfg.deepseek_api_key, cfg.http_timeout, http)
        return OpenAICompatibleBackend(
            replace(config, default_model=cfg.deepseek_default_model),
            client,
            base_url=cfg.deepseek_base_url,
            require_api_key=True,
        )
    if config.name == "ragflow":
        client = UpstreamClient(config.name, cfg.ragflow_api_key, cfg.http_timeout, http)
        return RagflowBackend(config, client, api_url=cfg.ragflow_api_url)
    client = UpstreamClient(config.name, cfg.local_api_key, cfg.http_timeout, http)
    return OpenAICompatibleBackend(
        replace(config, default_model=cfg.local_model),
        client,
        base_url=cfg.local_base_url,
    )


def build_backends(settings=None, http: Optional[httpx.AsyncClient] = None) -> Dict[str, Backend]:
    """一次性创建全部后端，共享同一个连接池。"""

    return {name: create_backend(name, settings, http) for name in ("local", "deepseek", "ragflow")}


__all__ = [
    "Backend",
    "PreparedCall",
    "UpstreamClient",
    "build_backends",
    "create_backend",
]
