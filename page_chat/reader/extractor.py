"""页面内容提取流水线。

按顺序执行：

1. 校验标签页（必须有 URL 和 id）。
2. 主机名匹配的站点策略优先，然后是通用策略，第一个非空结果胜出。
3. 清洗文本：连续空白（包括空行）合并为一个空格，去掉首尾空白。
4. 超过最大长度时截断并追加省略号。

任何失败都转换为 ExtractResult(success=False)，不会向调用方抛异常。
"""

import logging
import re
from typing import List, Optional, Sequence

from page_chat.config.settings import settings
from page_chat.domain.exceptions import BusinessError
from page_chat.domain.models import ExtractResult, PageContent, TabHandle
from page_chat.infrastructure.logging.logger import log_event, logger
from page_chat.reader.executor import ScriptExecutor
from page_chat.reader.strategies import (
    GENERIC_STRATEGY,
    SITE_STRATEGIES,
    ExtractionStrategy,
    ReaderOptions,
)


NO_TAB_URL = "No tab URL provided"
NO_TAB_ID = "No tab ID"
EXTRACTION_FAILED = "Failed to extract content from page"

ELLIPSIS = "..."

_WHITESPACE = re.compile(r"\s+")


def clean_text(text: Optional[str]) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def truncate(text: str, max_length: int) -> str:
    """超过 max_length 时截断为 max_length 个字符并追加省略号；恰好等于时不加。"""

    if len(text) > max_length:
        return text[:max_length] + ELLIPSIS
    return text


class ContentExtractor:
    def __init__(
        self,
        executor: ScriptExecutor,
        strategies: Sequence[ExtractionStrategy] = SITE_STRATEGIES,
        generic: ExtractionStrategy = GENERIC_STRATEGY,
        max_length: Optional[int] = None,
    ):
        self._executor = executor
        self._strategies = list(strategies)
        self._generic = generic
        self._max_length = max_length or settings.max_content_length

    def strategies_for(self, url: str) -> List[ExtractionStrategy]:
        chain = [s for s in self._strategies if s.matches(url)]
        chain.append(self._generic)
        return chain

    async def extract(self, tab: Optional[TabHandle], options: Optional[ReaderOptions] = None) -> ExtractResult:
        if tab is None or not tab.url:
            return ExtractResult.fail(NO_TAB_URL)
        if tab.id is None:
            return ExtractResult.fail(NO_TAB_ID)

        options = options or ReaderOptions()
        max_length = options.max_length or self._max_length
        log_ctx = {"tab_id": tab.id, "url": tab.url}
        try:
            for strategy in self.strategies_for(tab.url):
                raw = await self._executor.run(tab, strategy.script(options))
                if raw is None:
                    log_event(logging.WARNING, "Page script returned no result", log_ctx, strategy=strategy.name)
                    return ExtractResult.fail(EXTRACTION_FAILED)
                content = clean_text(raw.get("content"))
                if not content:
                    continue
                page = PageContent(
                    title=clean_text(raw.get("title")),
                    content=truncate(content, max_length),
                    url=raw.get("url") or tab.url,
                )
                log_event(
                    logging.INFO,
                    "Extracted page content",
                    log_ctx,
                    strategy=strategy.name,
                    length=len(page.content),
                    truncated=len(content) > max_length,
                )
                return ExtractResult.ok(page)
        except BusinessError as e:
            log_event(logging.WARNING, "Page script failed", log_ctx, code=e.code, error=e.message)
            return ExtractResult.fail(e.message)
        except Exception as e:
            logger.exception("Unexpected extraction error", extra={"extra": log_ctx})
            return ExtractResult.fail(str(e) or "Unknown error")

        log_event(logging.INFO, "No extractable text on page", log_ctx)
        return ExtractResult.fail(EXTRACTION_FAILED)
