"""页面脚本执行器。

ContentExtractor 只依赖 ScriptExecutor 协议：给定标签页句柄和提取参数，
在该页面的文档上下文里执行一段只读的 DOM 遍历脚本，返回
{title, content, url}；脚本内部出错时返回 None。

PlaywrightScriptExecutor 通过 page.evaluate 实现这一协议，
页面由 BrowserTabs 统一登记并分配标签页 id。
"""

from itertools import count
from typing import Any, Dict, List, Optional, Protocol

from playwright.async_api import BrowserContext, Error as PlaywrightError, Page

from page_chat.domain.exceptions import ExtractionFailure
from page_chat.domain.models import TabHandle
from page_chat.reader.strategies import ExtractionScript


class ScriptExecutor(Protocol):
    async def run(self, tab: TabHandle, script: ExtractionScript) -> Optional[Dict[str, Any]]:
        ...


# 在页面中执行：只读取文本，排除节点时操作的是元素副本
EXTRACT_SCRIPT = """
({ selectors, exclude, includeBody }) => {
    try {
        const textOf = (element) => {
            if (!exclude.length) {
                return element.textContent || '';
            }
            const copy = element.cloneNode(true);
            for (const selector of exclude) {
                copy.querySelectorAll(selector).forEach((node) => node.remove());
            }
            return copy.textContent || '';
        };

        let content = '';
        for (const selector of selectors) {
            for (const element of document.querySelectorAll(selector)) {
                content = textOf(element);
                if (content.trim()) {
                    break;
                }
            }
            if (content.trim()) {
                break;
            }
        }

        if (!content.trim() && includeBody && document.body) {
            content = textOf(document.body);
        }

        return {
            title: document.title || '',
            content,
            url: window.location.href,
        };
    } catch (e) {
        return null;
    }
}
"""


class BrowserTabs:
    """登记 Playwright 页面，为每个页面分配稳定的标签页 id。"""

    def __init__(self, context: Optional[BrowserContext] = None):
        self._context = context
        self._ids = count(1)
        self._pages: Dict[int, Page] = {}

    @property
    def context(self) -> Optional[BrowserContext]:
        return self._context

    def register(self, page: Page) -> int:
        for tab_id, known in self._pages.items():
            if known is page:
                return tab_id
        tab_id = next(self._ids)
        self._pages[tab_id] = page
        return tab_id

    def page_for(self, tab: TabHandle) -> Optional[Page]:
        if tab.id is None:
            return None
        page = self._pages.get(tab.id)
        if page is not None and page.is_closed():
            del self._pages[tab.id]
            return None
        return page

    def _open_pages(self) -> List[Page]:
        if self._context is not None:
            for page in self._context.pages:
                self.register(page)
        return [p for p in self._pages.values() if not p.is_closed()]

    async def handle_for(self, page: Page) -> TabHandle:
        tab_id = self.register(page)
        try:
            title = await page.title()
        except PlaywrightError:
            title = ""
        return TabHandle(id=tab_id, url=page.url or None, title=title)

    async def active_tab(self) -> Optional[TabHandle]:
        """最近打开的页面视为当前活动标签页。"""

        pages = self._open_pages()
        if not pages:
            return None
        return await self.handle_for(pages[-1])


class PlaywrightScriptExecutor:
    def __init__(self, tabs: BrowserTabs):
        self._tabs = tabs

    async def run(self, tab: TabHandle, script: ExtractionScript) -> Optional[Dict[str, Any]]:
        page = self._tabs.page_for(tab)
        if page is None:
            raise ExtractionFailure(
                code="EXTRACTION_FAILED",
                message=f"Tab {tab.id} is not available",
                tab_id=tab.id,
            )
        try:
            result = await page.evaluate(EXTRACT_SCRIPT, script.to_arg())
        except PlaywrightError as e:
            raise ExtractionFailure(code="EXTRACTION_FAILED", message=str(e), tab_id=tab.id)
        return result if isinstance(result, dict) else None
