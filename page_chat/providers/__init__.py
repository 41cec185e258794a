"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 的地址与默认模型 (registry)。
- 提供各厂商的具体实现 (deepseek_client、openai_client)。
- 按 Provider 缓存客户端并统一调用入口 (router)。
"""

from typing import Optional, assert_never

from page_chat.config.settings import Settings, settings
from page_chat.domain.exceptions import UnsupportedProviderError
from page_chat.domain.models import ApiConfig, Provider
from page_chat.providers.base import ProviderClient
from page_chat.providers.deepseek_client import DeepseekClient
from page_chat.providers.openai_client import OpenAIClient


def create_provider(provider: Provider | str, api: ApiConfig, cfg: Optional[Settings] = None) -> ProviderClient:
    """根据 Provider 创建客户端实例。每个枚举值都必须在这里显式处理。"""

    provider = Provider.parse(provider)
    cfg = cfg or settings
    if provider is Provider.DEEPSEEK:
        return DeepseekClient(api, cfg)
    elif provider is Provider.OPENAI:
        return OpenAIClient(api, cfg)
    elif provider is Provider.ANTHROPIC:
        raise UnsupportedProviderError(
            code="UNSUPPORTED_PROVIDER",
            message=f"Unsupported API provider: {provider.value}",
            provider=provider.value,
        )
    else:
        assert_never(provider)
