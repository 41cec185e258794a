"""OpenAI 兼容协议的 Provider 适配器基类。

Deepseek 与 OpenAI 都使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本模块负责：

1. 按固定顺序组装消息：系统提示词 → 页面上下文（可选）→ 历史 → 用户消息。
2. 将其转换为 chat/completions 的请求 JSON。
3. 调用 HTTP 接口并处理网络/API 异常。
4. 取第一条 choice 的文本，构造 role=assistant 的 ChatMessage。

子类只需要声明 name / provider_config，必要时覆盖 _headers。
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from page_chat.config.settings import Settings, settings as default_settings
from page_chat.domain.exceptions import ApiError, EmptyResponseError, NetworkError, RateLimitError
from page_chat.domain.models import (
    ApiConfig,
    ChatContext,
    ChatMessage,
    ChatOptions,
    ChatRequest,
    ChatResponse,
    ChatUsage,
    Provider,
)
from page_chat.infrastructure.logging.logger import log_event
from page_chat.prompts import load_context_template, load_system_prompt, render_context
from page_chat.providers.registry import ProviderConfig


class OpenAICompatibleClient:
    name: Provider
    provider_config: ProviderConfig

    def __init__(self, api: ApiConfig, cfg: Settings = default_settings):
        self._api = api
        self._settings = cfg

    @property
    def model(self) -> str:
        return self._api.model or self.provider_config.default_model

    @property
    def base_url(self) -> str:
        base = (
            self._api.base_url
            or getattr(self._settings, f"{self.name.value}_base_url", None)
            or self.provider_config.base_url
        )
        return base.rstrip("/")

    # ---- 请求组装 ----

    def build_messages(
        self,
        content: str,
        history: Sequence[ChatMessage] = (),
        context: Optional[ChatContext] = None,
    ) -> List[ChatMessage]:
        locale = self._settings.prompt_locale
        messages = [ChatMessage(role="system", content=load_system_prompt(locale))]
        if context is not None and context.has_page:
            template = load_context_template(self.name.value, locale)
            messages.append(
                ChatMessage(
                    role="system",
                    content=render_context(template, context.page_title, context.page_content),
                )
            )
        messages.extend(history)
        messages.append(ChatMessage(role="user", content=content))
        return messages

    def build_request(
        self,
        content: str,
        history: Sequence[ChatMessage] = (),
        context: Optional[ChatContext] = None,
        options: Optional[ChatOptions] = None,
    ) -> ChatRequest:
        options = options or ChatOptions()
        temperature = options.temperature
        if temperature is None:
            temperature = self._settings.default_temperature
        max_tokens = options.max_tokens
        if max_tokens is None:
            max_tokens = self._settings.default_max_tokens
        return ChatRequest(
            provider=self.name,
            model=self.model,
            messages=self.build_messages(content, history, context),
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def _build_payload(self, req: ChatRequest) -> Dict[str, Any]:
        return {
            "model": req.model,
            "messages": [m.to_dict() for m in req.messages],
            "temperature": req.temperature,
            "max_tokens": req.max_tokens,
            "stream": False,
        }

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api.api_key}",
            "Content-Type": "application/json",
        }

    # ---- 调用 ----

    async def send_message(
        self,
        content: str,
        history: Sequence[ChatMessage] = (),
        context: Optional[ChatContext] = None,
        options: Optional[ChatOptions] = None,
    ) -> ChatResponse:
        req = self.build_request(content, history, context, options)
        payload = self._build_payload(req)
        label = self.name.label
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name.value)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=f"{label} rate limit", provider=self.name.value)
        if resp.status_code >= 400:
            raise ApiError(
                code="API_ERROR",
                message=resp.text,
                http_status=resp.status_code,
                provider=self.name.value,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="API_ERROR", message=f"Invalid JSON from {label}: {e}", provider=self.name.value)
        return self._parse_response(data)

    def _parse_response(self, data: Dict[str, Any]) -> ChatResponse:
        """取第一条 choice 的文本作为助手回答。"""

        choices = data.get("choices") or []
        first = choices[0] if choices else {}
        reply = (first.get("message") or {}).get("content")
        if not reply:
            raise EmptyResponseError(
                code="EMPTY_RESPONSE",
                message=f"No response from {self.name.label}",
                provider=self.name.value,
            )
        usage = None
        usage_raw = data.get("usage") or {}
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
            log_event(
                logging.INFO,
                "Token usage",
                {"provider": self.name.value, "model": self.model},
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
        return ChatResponse(message=ChatMessage(role="assistant", content=reply), usage=usage, raw=data)
