"""页面内容提取策略。

一个策略就是一组按优先级排列的 CSS 选择器：页面脚本依次查询，
第一个文本非空的元素胜出。站点专用策略通过 url_patterns 匹配主机名，
匹配失败或提取为空时回退到通用策略。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import urlparse


@dataclass
class ReaderOptions:
    """单次提取的可选参数。

    - include_selectors: 优先于策略自身选择器尝试的选择器。
    - exclude_selectors: 读取文本前从元素副本中移除的节点（如导航、代码行号）。
    - max_length: 覆盖默认的最大字符数。
    """

    include_selectors: Sequence[str] = ()
    exclude_selectors: Sequence[str] = ()
    max_length: Optional[int] = None


@dataclass(frozen=True)
class ExtractionScript:
    """发送给页面沙箱脚本的参数（可 JSON 序列化）。"""

    selectors: Tuple[str, ...]
    exclude: Tuple[str, ...] = ()
    include_body: bool = False

    def to_arg(self) -> Dict[str, Any]:
        return {
            "selectors": list(self.selectors),
            "exclude": list(self.exclude),
            "includeBody": self.include_body,
        }


@dataclass(frozen=True)
class ExtractionStrategy:
    name: str
    selectors: Tuple[str, ...]
    url_patterns: Tuple[str, ...] = field(default=())
    include_body: bool = False

    def matches(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return False
        return any(host == p or host.endswith("." + p) for p in self.url_patterns)

    def script(self, options: Optional[ReaderOptions] = None) -> ExtractionScript:
        options = options or ReaderOptions()
        return ExtractionScript(
            selectors=tuple(options.include_selectors) + self.selectors,
            exclude=tuple(options.exclude_selectors),
            include_body=self.include_body,
        )


# 代码托管站点：README → 文件查看区 → issue / PR 讨论区
GITHUB_STRATEGY = ExtractionStrategy(
    name="github",
    url_patterns=("github.com",),
    selectors=(
        "#readme",
        ".blob-wrapper, .Box-body",
        ".js-comment-container",
    ),
)

GENERIC_STRATEGY = ExtractionStrategy(
    name="default",
    selectors=(
        "article, main",
        ".content, #content, .article, #article",
    ),
    include_body=True,
)

SITE_STRATEGIES: Tuple[ExtractionStrategy, ...] = (GITHUB_STRATEGY,)
