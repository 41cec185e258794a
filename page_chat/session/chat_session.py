"""对话会话编排。

ChatSession 把设置仓库、Provider 路由和页面内容提取组合成一个可用的对话：

- 同一时间只允许一次发送（sending 标志在第一个 await 之前设置）。
- 用户消息先乐观地写入历史；失败时保留，方便用户直接重试。
- 发送给 Provider 的历史是追加本次用户消息之前的最近 N 条。
- 切换 Provider 时保留历史。
- 所有可恢复错误都转换为 Notification，不会抛给 UI 层。
"""

import logging
from typing import Awaitable, Callable, List, Optional

from page_chat.config.settings import Settings, settings as default_settings
from page_chat.domain.exceptions import BusinessError, StorageError
from page_chat.domain.models import (
    ApiConfig,
    ApiSetting,
    ChatContext,
    ChatMessage,
    ChatOptions,
    ExtractResult,
    PageContent,
    Provider,
    TabHandle,
)
from page_chat.infrastructure.logging.logger import log_event, logger
from page_chat.infrastructure.storage.kv_store import KeyValueStore
from page_chat.infrastructure.storage.settings_repository import SettingsRepository
from page_chat.providers.router import ProviderRouter
from page_chat.reader.extractor import ContentExtractor
from page_chat.reader.strategies import ReaderOptions
from page_chat.session.history import dump_history, load_history, window_history
from page_chat.session.notifications import Notification, Notifier, describe_error, ignore


HISTORY_KEY = "chat_history"

NO_ACTIVE_TAB = "No active tab found"
CONTENT_UPDATED = "Content updated successfully"

TabSource = Callable[[], Awaitable[Optional[TabHandle]]]


class ChatSession:
    def __init__(
        self,
        repository: SettingsRepository,
        router: ProviderRouter,
        store: KeyValueStore,
        extractor: Optional[ContentExtractor] = None,
        tab_source: Optional[TabSource] = None,
        notifier: Optional[Notifier] = None,
        cfg: Settings = default_settings,
    ):
        self._repository = repository
        self._router = router
        self._store = store
        self._extractor = extractor
        self._tab_source = tab_source
        self._notify = notifier or ignore
        self._settings = cfg

        self.messages: List[ChatMessage] = []
        self.page_content: Optional[PageContent] = None
        self.current_setting: Optional[ApiSetting] = None
        self.sending = False
        self.loading_content = False
        self.error: Optional[str] = None

    # ---- 生命周期 ----

    async def load(self) -> None:
        """恢复上次的对话历史，并按已选配置初始化 Provider。"""

        await self._restore_history()
        await self.reload_settings()

    async def reload_settings(self) -> Optional[ApiSetting]:
        """设置保存后重新解析当前配置并初始化对应 Provider。"""

        try:
            selected = await self._repository.get_selected_setting()
            if selected is not None:
                self._activate(selected)
            else:
                self.current_setting = None
        except BusinessError as e:
            self._fail(e)
        return self.current_setting

    def close(self) -> None:
        self.messages = []
        self.page_content = None
        self.error = None

    @property
    def provider(self) -> Provider:
        if self.current_setting is not None:
            return self.current_setting.provider
        return Provider.parse(self._settings.default_provider)

    @property
    def context(self) -> ChatContext:
        if self.page_content is None:
            return ChatContext()
        return ChatContext(page_title=self.page_content.title, page_content=self.page_content.content)

    # ---- 对话 ----

    async def send_message(self, text: str, options: Optional[ChatOptions] = None) -> Optional[ChatMessage]:
        """发送一条用户消息，成功时返回助手回答；空白输入或正在发送时直接返回 None。"""

        if not text or not text.strip() or self.sending:
            return None
        self.sending = True
        try:
            window = window_history(self.messages, self._settings.max_history_messages)
            self.messages.append(ChatMessage(role="user", content=text))
            await self._persist_history()

            response = await self._router.send_message(self.provider, text, window, self.context, options)

            self.messages.append(response.message)
            self.error = None
            await self._persist_history()
            return response.message
        except BusinessError as e:
            self._fail(e)
        except Exception as e:
            logger.exception("Unexpected error while sending message")
            self._fail(e)
        finally:
            self.sending = False
        return None

    async def clear_messages(self) -> None:
        self.messages = []
        self.error = None
        try:
            await self._store.remove(HISTORY_KEY)
        except StorageError as e:
            log_event(logging.ERROR, "Failed to remove chat history", {}, code=e.code, error=e.message)

    async def switch_provider(self, name: str) -> ApiSetting:
        """切换到指定名称的配置；历史保留。找不到时抛 SettingNotFoundError。"""

        try:
            setting = await self._repository.find_setting(name)
            self._activate(setting)
            await self._repository.set_selected_setting(setting)
        except BusinessError as e:
            self._notify(Notification(describe_error(e), "error"))
            raise
        log_event(logging.INFO, "Switched provider", {"provider": setting.provider.value}, history=len(self.messages))
        return setting

    async def refresh_page_content(
        self,
        tab: Optional[TabHandle] = None,
        options: Optional[ReaderOptions] = None,
    ) -> ExtractResult:
        """重新提取当前标签页内容；失败只提示，不影响对话历史和已有页面内容。"""

        self.loading_content = True
        try:
            if tab is None and self._tab_source is not None:
                tab = await self._tab_source()
            if tab is None:
                result = ExtractResult.fail(NO_ACTIVE_TAB)
            elif self._extractor is None:
                result = ExtractResult.fail("Content extraction is not available")
            else:
                result = await self._extractor.extract(tab, options)
        except BusinessError as e:
            result = ExtractResult.fail(describe_error(e))
        finally:
            self.loading_content = False

        if result.success and result.content is not None:
            self.page_content = result.content
            self._notify(Notification(CONTENT_UPDATED, "success"))
        else:
            self._notify(Notification(result.error or "Failed to get page content. Please try again.", "error"))
        return result

    # ---- 内部 ----

    def _activate(self, setting: ApiSetting) -> None:
        self._router.init_api(setting.provider, ApiConfig.from_setting(setting))
        self.current_setting = setting

    def _fail(self, error: Exception) -> None:
        self.error = describe_error(error)
        self._notify(Notification(self.error, "error"))

    async def _persist_history(self) -> None:
        try:
            await self._store.set(HISTORY_KEY, dump_history(self.messages))
        except StorageError as e:
            log_event(logging.ERROR, "Failed to persist chat history", {}, code=e.code, error=e.message)

    async def _restore_history(self) -> None:
        try:
            raw = await self._store.get(HISTORY_KEY)
        except StorageError as e:
            log_event(logging.ERROR, "Failed to read chat history", {}, code=e.code, error=e.message)
            return
        if not raw:
            return
        try:
            self.messages = load_history(raw)
        except (ValueError, KeyError, TypeError) as e:
            log_event(logging.ERROR, "Failed to parse saved messages", {}, error=str(e))
            await self.clear_messages()
