import dataclasses

import pytest

from page_chat.domain.exceptions import UnsupportedProviderError
from page_chat.domain.models import ApiSetting, ChatMessage, ExtractResult, PageContent, Provider, SettingRef


def test_api_setting_uses_camel_case_keys():
    s = ApiSetting(name="Work", provider=Provider.OPENAI, api_key="sk-1", organization="org-1")
    data = s.to_dict()
    assert data == {"name": "Work", "provider": "openai", "apiKey": "sk-1", "organization": "org-1"}
    assert ApiSetting.from_dict(data) == s


def test_provider_parse():
    assert Provider.parse("DeepSeek") is Provider.DEEPSEEK
    assert Provider.OPENAI.label == "ChatGPT"
    with pytest.raises(UnsupportedProviderError):
        Provider.parse("gemini")


def test_setting_ref_ignores_full_record_fields():
    ref = SettingRef.from_dict({"name": "A", "provider": "deepseek", "apiKey": "k"})
    assert ref == SettingRef(name="A", provider=Provider.DEEPSEEK)


def test_chat_message_is_immutable():
    m = ChatMessage(role="user", content="hi")
    with pytest.raises(dataclasses.FrozenInstanceError):
        m.content = "changed"
    with pytest.raises(ValueError):
        ChatMessage.from_dict({"role": "tool", "content": "x"})


def test_extract_result_helpers():
    ok = ExtractResult.ok(PageContent(title="t", content="c", url="u"))
    assert ok.success and ok.content.title == "t"
    bad = ExtractResult.fail("nope")
    assert not bad.success and bad.error == "nope"
