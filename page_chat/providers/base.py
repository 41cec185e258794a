"""Provider 抽象接口。

ProviderRouter 不直接依赖具体厂商的 HTTP 协议，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 DeepseekClient）。
- 负责：组装消息列表（系统提示词、页面上下文、历史、用户消息），
  调用厂商 API，并把响应解析为统一的 ChatResponse。

这样可以在不改会话层代码的前提下接入更多厂商。
"""

from typing import Optional, Protocol, Sequence

from page_chat.domain.models import ChatContext, ChatMessage, ChatOptions, ChatResponse, Provider


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 标识，用于路由与日志。
    - send_message(...): 执行一次非流式对话调用，返回统一的 ChatResponse。
    """

    name: Provider

    async def send_message(
        self,
        content: str,
        history: Sequence[ChatMessage] = (),
        context: Optional[ChatContext] = None,
        options: Optional[ChatOptions] = None,
    ) -> ChatResponse:
        ...
