"""会话历史的窗口裁剪与序列化。

发送给 Provider 的历史只取最近 N 条。会话层在追加本次用户消息之前取窗口，
用户消息由 Provider 适配器放在最后，因此同一条消息不会发送两次。
"""

import json
from typing import List, Sequence

from page_chat.domain.models import ChatMessage


MAX_HISTORY_MESSAGES = 10


def window_history(messages: Sequence[ChatMessage], limit: int = MAX_HISTORY_MESSAGES) -> List[ChatMessage]:
    """返回最近 limit 条消息（保持原顺序）。"""

    if limit <= 0:
        return []
    return list(messages[-limit:])


def dump_history(messages: Sequence[ChatMessage]) -> str:
    return json.dumps([m.to_dict() for m in messages], ensure_ascii=False)


def load_history(raw: str) -> List[ChatMessage]:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("chat history is not a JSON array")
    return [ChatMessage.from_dict(item) for item in data]
