"""对外 API 服务模块。

负责把各组件按依赖关系组装起来（存储 → 设置仓库 → 路由 → 提取 → 会话），
并提供简化的函数接口供上层应用调用。组件都是显式构造、向下传递的，
没有进程级单例。
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from playwright.async_api import async_playwright

from page_chat.config.settings import Settings, settings as default_settings
from page_chat.domain.models import TabHandle
from page_chat.infrastructure.logging.logger import logger
from page_chat.infrastructure.storage.kv_store import KeyValueStore, create_key_value_store
from page_chat.infrastructure.storage.settings_repository import SettingsRepository
from page_chat.providers.router import ProviderRouter
from page_chat.reader.executor import BrowserTabs, PlaywrightScriptExecutor, ScriptExecutor
from page_chat.reader.extractor import ContentExtractor
from page_chat.session.chat_session import ChatSession, TabSource
from page_chat.session.notifications import Notifier


@dataclass
class Services:
    store: KeyValueStore
    repository: SettingsRepository
    router: ProviderRouter
    extractor: ContentExtractor
    session: ChatSession
    tabs: Optional[BrowserTabs] = None


def build_services(
    cfg: Settings = default_settings,
    store: Optional[KeyValueStore] = None,
    executor: Optional[ScriptExecutor] = None,
    tabs: Optional[BrowserTabs] = None,
    tab_source: Optional[TabSource] = None,
    router: Optional[ProviderRouter] = None,
    notifier: Optional[Notifier] = None,
) -> Services:
    """组装一套完整的服务对象。

    Args:
        cfg: 配置对象
        store: 键值存储（可选，不提供则按环境探测创建）
        executor: 页面脚本执行器（可选，默认使用 tabs 对应的 Playwright 执行器）
        tabs: 浏览器标签页登记表（可选）
        tab_source: 获取当前活动标签页的协程函数（可选，默认 tabs.active_tab）
        router: Provider 路由（可选，测试可注入假适配器）
        notifier: toast 通知回调（可选）
    """

    store = store or create_key_value_store(cfg)
    repository = SettingsRepository(store)
    router = router or ProviderRouter()
    if executor is None:
        if tabs is None:
            tabs = BrowserTabs()
        executor = PlaywrightScriptExecutor(tabs)
    if tab_source is None and tabs is not None:
        tab_source = tabs.active_tab
    extractor = ContentExtractor(executor, max_length=cfg.max_content_length)
    session = ChatSession(
        repository=repository,
        router=router,
        store=store,
        extractor=extractor,
        tab_source=tab_source,
        notifier=notifier,
        cfg=cfg,
    )
    return Services(
        store=store,
        repository=repository,
        router=router,
        extractor=extractor,
        session=session,
        tabs=tabs,
    )


@asynccontextmanager
async def browser_services(
    cfg: Settings = default_settings,
    headless: bool = True,
    notifier: Optional[Notifier] = None,
) -> AsyncIterator[Services]:
    """启动 Chromium 并返回已加载的服务对象，退出时关闭浏览器。"""

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=headless)
        context = await browser.new_context()
        services = build_services(cfg, tabs=BrowserTabs(context), notifier=notifier)
        await services.session.load()
        logger.info("Browser services started", extra={"extra": {"headless": headless}})
        try:
            yield services
        finally:
            services.session.close()
            await context.close()
            await browser.close()


async def open_tab(services: Services, url: str) -> TabHandle:
    """在受控浏览器中打开一个新页面并返回它的标签页句柄。"""

    if services.tabs is None or services.tabs.context is None:
        raise RuntimeError("open_tab requires browser_services()")
    page = await services.tabs.context.new_page()
    await page.goto(url)
    return await services.tabs.handle_for(page)


def mask_api_key(api_key: str) -> str:
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:3]}...{api_key[-4:]}"


async def list_api_settings(repository: SettingsRepository) -> List[Dict[str, Any]]:
    """列出所有 API 配置（Key 已脱敏），当前选中的配置带 selected 标记。

    Returns:
        配置列表，每项包含 name, provider, label, model, apiKey, selected
    """

    collection = await repository.get_api_settings()
    selected = await repository.get_selected_setting()
    return [
        {
            "name": s.name,
            "provider": s.provider.value,
            "label": s.provider.label,
            "model": s.model,
            "apiKey": mask_api_key(s.api_key),
            "selected": selected is not None and s.ref == selected.ref,
        }
        for s in collection
    ]


async def run_page_chat(session: ChatSession, user_input: str) -> Dict[str, Any]:
    """发送一条消息并返回便于序列化的结果。

    Returns:
        包含 provider、回答、错误信息与当前历史长度的字典
    """

    reply = await session.send_message(user_input)
    return {
        "provider": session.provider.value,
        "reply": reply.content if reply else None,
        "error": None if reply else session.error,
        "history_length": len(session.messages),
        "page_url": session.page_content.url if session.page_content else None,
    }
