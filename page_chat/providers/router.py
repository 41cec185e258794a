"""Provider 路由（APIManager）。

按 Provider 缓存一个客户端实例，对外只暴露统一的 send_message。
状态：未初始化 → init_api 后就绪；配置变化（切换 Provider、修改 Key）时
再次 init_api 会替换缓存的客户端。

路由器需要显式构造并传递给调用方，测试可以注入自己的 factory。
"""

import logging
import time
from typing import Callable, Dict, Optional, Sequence
from uuid import uuid4

from page_chat.domain.exceptions import BusinessError, NotInitializedError, ValidationError
from page_chat.domain.models import ApiConfig, ChatContext, ChatMessage, ChatOptions, ChatResponse, Provider
from page_chat.infrastructure.logging.logger import log_event
from page_chat.providers import create_provider
from page_chat.providers.base import ProviderClient


ProviderFactory = Callable[[Provider, ApiConfig], ProviderClient]


class ProviderRouter:
    def __init__(self, factory: Optional[ProviderFactory] = None):
        self._factory: ProviderFactory = factory or create_provider
        self._clients: Dict[Provider, ProviderClient] = {}

    def init_api(self, provider: Provider | str, config: ApiConfig) -> ProviderClient:
        """构造并缓存 Provider 客户端，替换之前缓存的实例。"""

        provider = Provider.parse(provider)
        if not config.api_key or not config.api_key.strip():
            raise ValidationError(
                code="MISSING_API_KEY",
                message=f"API key for {provider.label} is not set",
                provider=provider.value,
            )
        client = self._factory(provider, config)
        replaced = provider in self._clients
        self._clients[provider] = client
        log_event(
            logging.INFO,
            "Initialized provider",
            {"provider": provider.value},
            model=config.model,
            replaced=replaced,
        )
        return client

    def is_initialized(self, provider: Provider | str) -> bool:
        return Provider.parse(provider) in self._clients

    def reset(self, provider: Provider | str | None = None) -> None:
        if provider is None:
            self._clients.clear()
        else:
            self._clients.pop(Provider.parse(provider), None)

    async def send_message(
        self,
        provider: Provider | str,
        content: str,
        history: Sequence[ChatMessage] = (),
        context: Optional[ChatContext] = None,
        options: Optional[ChatOptions] = None,
    ) -> ChatResponse:
        provider = Provider.parse(provider)
        # 在 await 之前取出客户端引用，发送过程中重新 init_api 不影响本次请求
        client = self._clients.get(provider)
        if client is None:
            raise NotInitializedError(
                code="NOT_INITIALIZED",
                message=f"{provider.label} API is not initialized",
                provider=provider.value,
            )

        log_ctx = {"trace_id": f"tr-{uuid4().hex}", "provider": provider.value}
        log_event(
            logging.INFO,
            "Calling provider",
            log_ctx,
            history_count=len(history),
            has_context=bool(context and context.has_page),
        )
        start = time.time()
        try:
            response = await client.send_message(content, list(history), context, options)
        except BusinessError as e:
            log_event(logging.ERROR, "Provider call failed", log_ctx, code=e.code, error=e.message)
            raise
        log_event(
            logging.INFO,
            "Provider call completed",
            log_ctx,
            elapsed_seconds=round(time.time() - start, 2),
        )
        return response
