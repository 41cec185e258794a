"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取提示词文本：

- system_default.md: 所有 Provider 共用的系统提示词。
- context_<provider>.md: 某个 Provider 专用的页面上下文模板，
  不存在时使用 context_default.md。

模板中的 {page_title} / {page_content} 会被替换为实际值，缺失时填 N/A。
"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Optional


PROMPTS_DIR = Path(__file__).resolve().parent

DEFAULT_LOCALE = "en"

_PLACEHOLDER = re.compile(r"\{(page_title|page_content)\}")


@lru_cache(maxsize=None)
def _read(locale: str, fname: str) -> Optional[str]:
    path = PROMPTS_DIR / locale / fname
    if not path.exists():
        if locale != DEFAULT_LOCALE:
            return _read(DEFAULT_LOCALE, fname)
        return None
    return path.read_text(encoding="utf-8").strip()


def load_system_prompt(locale: str = DEFAULT_LOCALE) -> str:
    """加载默认系统提示词。"""

    text = _read(locale, "system_default.md")
    if text is None:
        raise FileNotFoundError(f"system prompt missing for locale {locale!r}")
    return text


def load_context_template(provider: str, locale: str = DEFAULT_LOCALE) -> str:
    """加载页面上下文模板，优先使用 Provider 专用模板。"""

    text = _read(locale, f"context_{provider}.md") or _read(locale, "context_default.md")
    if text is None:
        raise FileNotFoundError(f"context template missing for locale {locale!r}")
    return text


def render_context(template: str, page_title: Optional[str], page_content: Optional[str]) -> str:
    values = {"page_title": page_title or "N/A", "page_content": page_content or "N/A"}
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], template)
