import asyncio

from page_chat.domain.models import ApiConfig, ChatContext
from page_chat.providers.openai_client import OpenAIClient


class SettingsStub:
    http_timeout = 1.0
    openai_base_url = "https://api.openai.com/v1/"
    default_temperature = 0.7
    default_max_tokens = 1000
    prompt_locale = "en"


def test_openai_headers_and_default_context(monkeypatch):
    captured = {}

    class Resp:
        status_code = 200

        def json(self):
            return {"choices": [{"message": {"role": "assistant", "content": "ok"}}]}

    class AsyncClient:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, json=None, headers=None, **_):
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            return Resp()

    monkeypatch.setattr("httpx.AsyncClient", AsyncClient)
    client = OpenAIClient(ApiConfig(api_key="sk", organization="org-1", project="proj-1"), SettingsStub())
    res = asyncio.run(client.send_message("hi", context=ChatContext(page_title="T", page_content="C")))

    assert res.message.content == "ok"
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["headers"]["OpenAI-Organization"] == "org-1"
    assert captured["headers"]["OpenAI-Project"] == "proj-1"
    assert captured["payload"]["model"] == "gpt-3.5-turbo"
    assert captured["payload"]["messages"][1]["content"] == "Current page title: T\nPage content: C"


def test_openai_headers_omit_optional_ids():
    client = OpenAIClient(ApiConfig(api_key="sk"), SettingsStub())
    headers = client._headers()
    assert "OpenAI-Organization" not in headers
    assert "OpenAI-Project" not in headers
