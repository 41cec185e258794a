"""对话会话层：历史窗口、通知与 ChatSession 编排。"""

from page_chat.session.chat_session import ChatSession
from page_chat.session.history import MAX_HISTORY_MESSAGES, window_history
from page_chat.session.notifications import Notification, describe_error

__all__ = ["ChatSession", "MAX_HISTORY_MESSAGES", "Notification", "describe_error", "window_history"]
