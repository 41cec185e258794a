"""页面内容提取。

- strategies: 站点专用 / 通用的选择器链与 ReaderOptions。
- executor: 在标签页中执行只读脚本的协议与 Playwright 实现。
- extractor: 选择策略、清洗与截断文本，产出 ExtractResult。
"""

from page_chat.reader.extractor import ContentExtractor, clean_text, truncate
from page_chat.reader.strategies import ReaderOptions

__all__ = ["ContentExtractor", "ReaderOptions", "clean_text", "truncate"]
