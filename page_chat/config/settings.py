"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
API Key 不在这里配置，而是由用户通过 SettingsRepository 保存。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("PAGE_CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class PageChatSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="deepseek",
        description="没有已选配置时使用的 Provider，例如 deepseek、openai",
    )
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com/v1",
        description="Deepseek API 基础URL",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI API 基础URL",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="默认生成温度")
    default_max_tokens: int = Field(default=1000, ge=1, description="默认最大输出 token 数")
    prompt_locale: str = Field(default="en", description="系统提示词语言目录")

    # ---- 会话与页面内容 ----
    max_history_messages: int = Field(
        default=10, ge=1, le=100, description="发送给 Provider 的最大历史消息数"
    )
    max_content_length: int = Field(
        default=4000, ge=1, description="页面内容最大字符数（超出部分截断）"
    )

    # ---- 存储与日志 ----
    storage_backend: Literal["auto", "file", "memory"] = Field(
        default="auto",
        description="键值存储实现：auto 按环境探测，file/memory 强制指定",
    )
    storage_root: str = Field(default=".storage", description="存储根目录")
    storage_namespace: str = Field(default="page_chat", description="存储命名空间（文件名）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PAGE_CHAT_",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("default_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"deepseek", "openai", "anthropic"}:
            raise ValueError(f"Unknown provider: {v!r}")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = PageChatSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = PageChatSettings
