"""OpenAI (ChatGPT) Provider 适配器。

与 Deepseek 相同的请求格式，额外支持可选的组织 ID / 项目 ID，
分别通过 OpenAI-Organization / OpenAI-Project 请求头传递。
"""

from typing import Dict

from page_chat.domain.models import Provider
from page_chat.providers.openai_compatible import OpenAICompatibleClient
from page_chat.providers.registry import OPENAI_CONFIG


class OpenAIClient(OpenAICompatibleClient):
    name = Provider.OPENAI
    provider_config = OPENAI_CONFIG

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self._api.organization:
            headers["OpenAI-Organization"] = self._api.organization
        if self._api.project:
            headers["OpenAI-Project"] = self._api.project
        return headers
