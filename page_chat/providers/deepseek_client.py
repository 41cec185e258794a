"""Deepseek Provider 适配器。

使用 OpenAI 兼容的 chat/completions 接口，页面上下文使用
prompts/<locale>/context_deepseek.md 模板。
"""

from page_chat.domain.models import Provider
from page_chat.providers.openai_compatible import OpenAICompatibleClient
from page_chat.providers.registry import DEEPSEEK_CONFIG


class DeepseekClient(OpenAICompatibleClient):
    """Deepseek 提供方客户端实现。"""

    name = Provider.DEEPSEEK
    provider_config = DEEPSEEK_CONFIG
