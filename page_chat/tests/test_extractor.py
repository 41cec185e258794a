import asyncio

from page_chat.domain.exceptions import ExtractionFailure
from page_chat.domain.models import TabHandle
from page_chat.reader.extractor import EXTRACTION_FAILED, ContentExtractor, clean_text, truncate
from page_chat.reader.strategies import GENERIC_STRATEGY, GITHUB_STRATEGY, ReaderOptions


class FakeExecutor:
    """按选择器 → 文本的映射模拟页面脚本。"""

    def __init__(self, dom, title="Page", url=None, result=None, error=None):
        self.dom = dom
        self.title = title
        self.url = url
        self.result = result
        self.error = error
        self.scripts = []

    async def run(self, tab, script):
        self.scripts.append(script)
        if self.error:
            raise self.error
        if self.result == "null":
            return None
        content = ""
        for selector in script.selectors:
            for part in selector.split(","):
                text = self.dom.get(part.strip(), "")
                if text.strip():
                    content = text
                    break
            if content.strip():
                break
        if not content.strip() and script.include_body:
            content = self.dom.get("body", "")
        return {"title": self.title, "content": content, "url": self.url or tab.url}


TAB = TabHandle(id=1, url="https://example.com/post")


def test_clean_text():
    assert clean_text("  a \n\n  b\t\tc  ") == "a b c"
    assert clean_text("line one\n\n\n   \nline two\r\n end") == "line one line two end"
    assert clean_text(None) == ""


def test_truncate_boundaries():
    assert truncate("x" * 4000, 4000) == "x" * 4000
    assert truncate("x" * 3999, 4000) == "x" * 3999
    assert truncate("x" * 4001, 4000) == "x" * 4000 + "..."


def test_generic_prefers_article():
    ex = FakeExecutor({"article": "  Main   story ", "body": "everything"})
    res = asyncio.run(ContentExtractor(ex).extract(TAB))
    assert res.success
    assert res.content.content == "Main story"
    assert res.content.title == "Page"
    assert res.content.url == "https://example.com/post"


def test_generic_falls_back_to_containers_then_body():
    ex = FakeExecutor({"#content": "container text", "body": "body text"})
    assert asyncio.run(ContentExtractor(ex).extract(TAB)).content.content == "container text"
    ex = FakeExecutor({"body": "body text"})
    assert asyncio.run(ContentExtractor(ex).extract(TAB)).content.content == "body text"


def test_long_content_truncated():
    ex = FakeExecutor({"main": "y" * 5000})
    res = asyncio.run(ContentExtractor(ex).extract(TAB))
    assert res.content.content == "y" * 4000 + "..."
    res = asyncio.run(ContentExtractor(ex).extract(TAB, ReaderOptions(max_length=10)))
    assert res.content.content == "y" * 10 + "..."


def test_empty_page_fails_without_raising():
    ex = FakeExecutor({"body": "   "})
    res = asyncio.run(ContentExtractor(ex).extract(TAB))
    assert not res.success
    assert res.error == EXTRACTION_FAILED


def test_missing_tab_details():
    ex = FakeExecutor({})
    extractor = ContentExtractor(ex)
    assert asyncio.run(extractor.extract(None)).error == "No tab URL provided"
    assert asyncio.run(extractor.extract(TabHandle(id=3, url=None))).error == "No tab URL provided"
    assert asyncio.run(extractor.extract(TabHandle(id=None, url="https://a.b"))).error == "No tab ID"
    assert ex.scripts == []


def test_script_failures_become_results():
    ex = FakeExecutor({}, error=ExtractionFailure(code="EXTRACTION_FAILED", message="Tab 1 is not available"))
    res = asyncio.run(ContentExtractor(ex).extract(TAB))
    assert res.error == "Tab 1 is not available"

    ex = FakeExecutor({}, result="null")
    assert asyncio.run(ContentExtractor(ex).extract(TAB)).error == EXTRACTION_FAILED

    ex = FakeExecutor({}, error=RuntimeError("unexpected"))
    assert asyncio.run(ContentExtractor(ex).extract(TAB)).error == "unexpected"


def test_github_strategy_runs_first():
    tab = TabHandle(id=2, url="https://github.com/owner/repo")
    ex = FakeExecutor({"#readme": "Readme text", "main": "main text"})
    res = asyncio.run(ContentExtractor(ex).extract(tab))
    assert res.content.content == "Readme text"
    assert ex.scripts[0].selectors == GITHUB_STRATEGY.selectors
    assert len(ex.scripts) == 1


def test_github_strategy_falls_back_to_generic():
    tab = TabHandle(id=2, url="https://gist.github.com/x")
    ex = FakeExecutor({"main": "main text"})
    res = asyncio.run(ContentExtractor(ex).extract(tab))
    assert res.content.content == "main text"
    assert [s.selectors for s in ex.scripts] == [GITHUB_STRATEGY.selectors, GENERIC_STRATEGY.selectors]


def test_strategy_matching_uses_host():
    assert GITHUB_STRATEGY.matches("https://github.com/a/b")
    assert not GITHUB_STRATEGY.matches("https://example.com/?q=github.com")
    assert not GITHUB_STRATEGY.matches("not a url")


def test_reader_options_are_passed_to_script():
    ex = FakeExecutor({".post-body": "picked", "article": "article"})
    options = ReaderOptions(include_selectors=[".post-body"], exclude_selectors=["nav"])
    res = asyncio.run(ContentExtractor(ex).extract(TAB, options))
    assert res.content.content == "picked"
    script = ex.scripts[0]
    assert script.selectors[0] == ".post-body"
    assert script.to_arg()["exclude"] == ["nav"]
