import asyncio
import json

import pytest

from page_chat.domain.exceptions import DuplicateNameError, SettingNotFoundError, StorageError, ValidationError
from page_chat.domain.models import ApiSetting, Provider
from page_chat.infrastructure.storage.kv_store import MemoryKeyValueStore
from page_chat.infrastructure.storage.settings_repository import (
    LEGACY_API_KEY,
    SELECTED_SETTING_KEY,
    SETTINGS_KEY,
    SettingsRepository,
)


def make_repo(initial=None):
    store = MemoryKeyValueStore(initial)
    return store, SettingsRepository(store)


class FailingStore(MemoryKeyValueStore):
    async def get(self, key):
        raise StorageError(code="STORE_READ_ERROR", message="disk gone")


def test_round_trip():
    _, repo = make_repo()
    collection = [
        ApiSetting(name="Deepseek", provider=Provider.DEEPSEEK, api_key="k1"),
        ApiSetting(name="GPT", provider=Provider.OPENAI, api_key="k2", model="gpt-4o", project="p1"),
    ]

    async def scenario():
        await repo.set_api_settings(collection)
        return await repo.get_api_settings()

    assert asyncio.run(scenario()) == collection


def test_missing_and_corrupt_blob_read_as_empty():
    _, repo = make_repo()
    assert asyncio.run(repo.get_api_settings()) == []
    _, repo = make_repo({SETTINGS_KEY: "[{broken"})
    assert asyncio.run(repo.get_api_settings()) == []
    _, repo = make_repo({SETTINGS_KEY: json.dumps([{"name": "x", "provider": "gemini", "apiKey": "k"}])})
    assert asyncio.run(repo.get_api_settings()) == []


def test_store_read_failure_reads_as_empty():
    repo = SettingsRepository(FailingStore())
    assert asyncio.run(repo.get_api_settings()) == []
    assert asyncio.run(repo.get_selected_setting()) is None


def test_migration_is_idempotent():
    store, repo = make_repo({LEGACY_API_KEY: "legacy-key"})

    async def scenario():
        first = await repo.migrate_legacy_api_key()
        # 模拟旧 Key 再次出现（例如另一个面板尚未升级）
        await store.set(LEGACY_API_KEY, "legacy-key")
        second = await repo.migrate_legacy_api_key()
        return first, second, await repo.get_api_settings(), await store.get(LEGACY_API_KEY)

    first, second, collection, legacy = asyncio.run(scenario())
    assert first is True
    assert second is False
    assert collection == [ApiSetting(name="Deepseek", provider=Provider.DEEPSEEK, api_key="legacy-key")]
    assert legacy is None


def test_concurrent_reads_migrate_once():
    _, repo = make_repo({LEGACY_API_KEY: "legacy-key"})

    async def scenario():
        results = await asyncio.gather(*(repo.get_api_settings() for _ in range(5)))
        return results, await repo.get_api_settings()

    results, final = asyncio.run(scenario())
    assert len(final) == 1
    assert all(len(r) == 1 for r in results)


def test_migration_keeps_existing_deepseek_entry():
    existing = [ApiSetting(name="Mine", provider=Provider.DEEPSEEK, api_key="new")]
    store, repo = make_repo({
        LEGACY_API_KEY: "old",
        SETTINGS_KEY: json.dumps([s.to_dict() for s in existing]),
    })
    assert asyncio.run(repo.get_api_settings()) == existing
    assert asyncio.run(store.get(LEGACY_API_KEY)) is None


def test_migration_avoids_name_collision():
    existing = [ApiSetting(name="Deepseek", provider=Provider.OPENAI, api_key="o")]
    _, repo = make_repo({LEGACY_API_KEY: "old", SETTINGS_KEY: json.dumps([s.to_dict() for s in existing])})
    names = [s.name for s in asyncio.run(repo.get_api_settings())]
    assert names == ["Deepseek", "Deepseek (2)"]


def test_selected_setting_resolves_or_falls_back():
    a = ApiSetting(name="A", provider=Provider.DEEPSEEK, api_key="k1")
    b = ApiSetting(name="B", provider=Provider.OPENAI, api_key="k2")
    store, repo = make_repo()

    async def scenario():
        assert await repo.get_selected_setting() is None
        await repo.set_api_settings([a, b])
        assert await repo.get_selected_setting() == a
        await repo.set_selected_setting(b)
        assert json.loads(await store.get(SELECTED_SETTING_KEY)) == {"name": "B", "provider": "openai"}
        assert await repo.get_selected_setting() == b
        await repo.remove_setting("B")
        return await repo.get_selected_setting()

    assert asyncio.run(scenario()) == a


def test_add_duplicate_name_rejected_and_storage_unchanged():
    store, repo = make_repo()

    async def scenario():
        await repo.add_setting(ApiSetting(name="A", provider=Provider.DEEPSEEK, api_key="k1"))
        before = await store.get(SETTINGS_KEY)
        with pytest.raises(DuplicateNameError):
            await repo.add_setting(ApiSetting(name="A", provider=Provider.OPENAI, api_key="k2"))
        return before, await store.get(SETTINGS_KEY)

    before, after = asyncio.run(scenario())
    assert before == after


def test_save_settings_validates():
    store, repo = make_repo()
    dup = [
        ApiSetting(name="A", provider=Provider.DEEPSEEK, api_key="k1"),
        ApiSetting(name=" A ", provider=Provider.OPENAI, api_key="k2"),
    ]
    with pytest.raises(DuplicateNameError):
        asyncio.run(repo.save_settings(dup))
    with pytest.raises(ValidationError):
        asyncio.run(repo.save_settings([ApiSetting(name="A", provider=Provider.DEEPSEEK, api_key="  ")]))
    assert asyncio.run(store.get(SETTINGS_KEY)) is None


def test_update_setting_renames_selected():
    _, repo = make_repo()
    a = ApiSetting(name="A", provider=Provider.DEEPSEEK, api_key="k1")
    b = ApiSetting(name="B", provider=Provider.OPENAI, api_key="k2")

    async def scenario():
        await repo.save_settings([a, b])
        await repo.set_selected_setting(b)
        with pytest.raises(DuplicateNameError):
            await repo.update_setting("B", ApiSetting(name="A", provider=Provider.OPENAI, api_key="k2"))
        with pytest.raises(SettingNotFoundError):
            await repo.update_setting("Z", b)
        renamed = ApiSetting(name="B2", provider=Provider.OPENAI, api_key="k3")
        await repo.update_setting("B", renamed)
        return await repo.get_selected_setting()

    assert asyncio.run(scenario()) == ApiSetting(name="B2", provider=Provider.OPENAI, api_key="k3")


def test_stored_api_key_upserts_by_provider():
    _, repo = make_repo()

    async def scenario():
        await repo.set_stored_api_key("openai", "k1")
        await repo.set_stored_api_key(Provider.OPENAI, "k2", name="GPT", model="gpt-4o")
        return await repo.get_api_settings(), await repo.get_stored_api_key("openai"), await repo.get_stored_api_key("deepseek")

    collection, key, missing = asyncio.run(scenario())
    assert collection == [ApiSetting(name="GPT", provider=Provider.OPENAI, api_key="k2", model="gpt-4o")]
    assert key == "k2"
    assert missing is None


def test_clear_all():
    store, repo = make_repo({SETTINGS_KEY: "[]", "chat_history": "[]"})
    asyncio.run(repo.clear_all())
    assert asyncio.run(store.get("chat_history")) is None


def test_migration_leaves_undecodable_settings_untouched():
    store, repo = make_repo({LEGACY_API_KEY: "old", SETTINGS_KEY: "[{broken"})

    async def scenario():
        migrated = await repo.migrate_legacy_api_key()
        return migrated, await repo.get_api_settings(), await store.get(SETTINGS_KEY), await store.get(LEGACY_API_KEY)

    migrated, collection, blob, legacy = asyncio.run(scenario())
    assert migrated is False
    assert collection == []
    assert blob == "[{broken"
    assert legacy == "old"
