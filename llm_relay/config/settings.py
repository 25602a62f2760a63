"""配置管理模块。

支持从初始化参数、环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


def _config_file() -> Path:
    """定位 YAML 配置文件：RELAY_CONFIG_FILE 优先，其次当前目录下的 config.yaml。"""
    explicit = os.getenv("RELAY_CONFIG_FILE")
    if explicit:
        return Path(explicit).expanduser()
    return Path.cwd() / "config.yaml"


class RelaySettings(BaseSettings):
    """中继服务配置（使用 Pydantic）。"""

    # ---- 本地模型运行时（OpenAI 兼容接口，如 Ollama /v1）----
    local_base_url: str = Field(
        default="http://localhost:11434/v1",
        description="本地模型运行时 API 基础URL",
    )
    local_model: str = Field(default="qwen2.5:7b", description="本地模型名称")
    local_api_key: Optional[str] = Field(default=None, description="本地运行时密钥（通常不需要）")

    # ---- DeepSeek ----
    deepseek_api_key: Optional[str] = Field(default=None, description="DeepSeek API 密钥")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com",
        description="DeepSeek API 基础URL",
    )
    deepseek_default_model: str = Field(default="deepseek-chat", description="DeepSeek 默认模型")

    # ---- RagFlow ----
    ragflow_api_url: Optional[str] = Field(
        default=None,
        description="RagFlow 聊天接口完整URL，形如 /api/v1/chats/{chat_id}/completions",
    )
    ragflow_api_key: Optional[str] = Field(default=None, description="RagFlow API 密钥")

    # ---- 通用 ----
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description="允许跨域的来源，逗号分隔",
    )
    host: str = Field(default="0.0.0.0", description="监听地址")
    port: int = Field(default=8080, ge=1, le=65535, description="监听端口")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("deepseek_api_key", "ragflow_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=_config_file()),
            file_secret_settings,
        )

    def parsed_cors_origins(self) -> list[str]:
        return [x.strip() for x in (self.cors_origins or "").split(",") if x.strip()]


settings = RelaySettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = RelaySettings
