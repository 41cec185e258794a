"""API 配置的持久化仓库。

在 KeyValueStore 之上提供带类型的 ApiSetting 读写：

- api_settings: 全部配置，按插入顺序序列化为一个 JSON 数组，一次写入。
- selected_setting: 当前选中配置的弱引用 {name, provider}，读取时解析，
  找不到则回退到第一条。
- api_key: 旧版本只保存一个 Deepseek Key，首次读取配置时迁移并删除。

读取失败不会抛给调用方，而是记录日志后按空集合处理；
写入失败以 StorageError 抛出。
"""

import asyncio
import json
import logging
from typing import List, Optional, Sequence, Union

from page_chat.domain.exceptions import (
    BusinessError,
    DuplicateNameError,
    MigrationError,
    SettingNotFoundError,
    StorageError,
    UnsupportedProviderError,
    ValidationError,
)
from page_chat.domain.models import ApiSetting, Provider, SettingRef
from page_chat.infrastructure.logging.logger import log_event
from page_chat.infrastructure.storage.kv_store import KeyValueStore


LEGACY_API_KEY = "api_key"
SETTINGS_KEY = "api_settings"
SELECTED_SETTING_KEY = "selected_setting"

# 迁移旧 Key 时合成的默认配置
LEGACY_PROVIDER = Provider.DEEPSEEK
LEGACY_SETTING_NAME = "Deepseek"


def resolve_selected(
    collection: Sequence[ApiSetting], ref: Optional[SettingRef]
) -> Optional[ApiSetting]:
    """把弱引用解析为集合中的配置：名称+Provider 精确匹配，其次仅名称匹配，最后回退到第一条。"""

    if not collection:
        return None
    if ref is not None:
        for s in collection:
            if s.name == ref.name and s.provider == ref.provider:
                return s
        for s in collection:
            if s.name == ref.name:
                return s
    return collection[0]


def validate_settings(collection: Sequence[ApiSetting]) -> None:
    """保存前校验：名称和 API Key 不能为空，名称（去除首尾空白后）不能重复。"""

    seen: set[str] = set()
    for s in collection:
        _check_required(s)
        name = s.name.strip()
        if name in seen:
            raise DuplicateNameError(
                code="DUPLICATE_NAME",
                message="Duplicate API names are not allowed",
                name=name,
            )
        seen.add(name)


def _check_required(setting: ApiSetting) -> None:
    if not setting.name.strip() or not setting.api_key.strip():
        raise ValidationError(
            code="VALIDATION_ERROR",
            message="Please fill in all required fields (Name and API Key)",
        )


def _index_of(collection: Sequence[ApiSetting], name: str) -> int:
    for i, s in enumerate(collection):
        if s.name == name:
            return i
    return -1


def _check_name_free(collection: Sequence[ApiSetting], name: str, skip_index: int = -1) -> None:
    wanted = name.strip()
    for i, s in enumerate(collection):
        if i != skip_index and s.name.strip() == wanted:
            raise DuplicateNameError(
                code="DUPLICATE_NAME",
                message=f"An API setting named {wanted!r} already exists",
                name=wanted,
            )


class SettingsRepository:
    def __init__(self, store: KeyValueStore):
        self._store = store
        self._migration_lock = asyncio.Lock()

    # ---- 集合读写 ----

    async def get_api_settings(self) -> List[ApiSetting]:
        await self.migrate_legacy_api_key()
        return await self._read_settings()

    async def set_api_settings(self, collection: Sequence[ApiSetting]) -> None:
        blob = json.dumps([s.to_dict() for s in collection], ensure_ascii=False)
        await self._store.set(SETTINGS_KEY, blob)

    async def _read_settings(self) -> List[ApiSetting]:
        try:
            return await self._load_settings()
        except StorageError as e:
            if e.code == "STORE_DECODE_ERROR":
                self._log_error("Failed to decode API settings", e)
            else:
                self._log_error("Failed to read API settings", e)
            return []

    async def _load_settings(self) -> List[ApiSetting]:
        """读取并解码配置集合；读取或解码失败时抛 StorageError。"""

        raw = await self._store.get(SETTINGS_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("api_settings is not a JSON array")
            return [ApiSetting.from_dict(item) for item in data]
        except (ValueError, KeyError, TypeError, UnsupportedProviderError) as e:
            raise StorageError(code="STORE_DECODE_ERROR", message=str(e), key=SETTINGS_KEY)

    # ---- 当前选中配置 ----

    async def get_selected_setting(self) -> Optional[ApiSetting]:
        collection = await self.get_api_settings()
        return resolve_selected(collection, await self._read_selected_ref())

    async def set_selected_setting(self, setting: Union[ApiSetting, SettingRef]) -> None:
        ref = setting.ref if isinstance(setting, ApiSetting) else setting
        await self._store.set(SELECTED_SETTING_KEY, json.dumps(ref.to_dict(), ensure_ascii=False))

    async def _read_selected_ref(self) -> Optional[SettingRef]:
        try:
            raw = await self._store.get(SELECTED_SETTING_KEY)
            if not raw:
                return None
            # 旧版本保存的是完整 ApiSetting，这里只取 name/provider
            return SettingRef.from_dict(json.loads(raw))
        except StorageError as e:
            self._log_error("Failed to read selected setting", e)
        except (ValueError, KeyError, TypeError, UnsupportedProviderError) as e:
            err = StorageError(code="STORE_DECODE_ERROR", message=str(e), key=SELECTED_SETTING_KEY)
            self._log_error("Failed to decode selected setting", err)
        return None

    # ---- 旧版迁移 ----

    async def migrate_legacy_api_key(self) -> bool:
        """把旧版单个 API Key 迁移为一条 Deepseek 配置。

        幂等：已存在 Deepseek 配置时不会重复添加；并发调用由锁串行化。
        返回本次是否新增了配置。
        """

        async with self._migration_lock:
            try:
                legacy = await self._store.get(LEGACY_API_KEY)
                if not legacy or not legacy.strip():
                    return False
                # 集合无法解码时直接失败：不覆盖原数据，也不删除旧 Key
                collection = await self._load_settings()
                added = False
                if not any(s.provider == LEGACY_PROVIDER for s in collection):
                    collection.append(
                        ApiSetting(
                            name=self._unique_name(collection, LEGACY_SETTING_NAME),
                            provider=LEGACY_PROVIDER,
                            api_key=legacy.strip(),
                        )
                    )
                    await self.set_api_settings(collection)
                    added = True
                await self._store.remove(LEGACY_API_KEY)
                log_event(logging.INFO, "Migrated legacy API key", {}, added=added)
                return added
            except StorageError as e:
                err = MigrationError(code="MIGRATION_ERROR", message=e.message, cause=e.code)
                self._log_error("Failed to migrate legacy API key", err)
                return False

    @staticmethod
    def _unique_name(collection: Sequence[ApiSetting], base: str) -> str:
        names = {s.name for s in collection}
        if base not in names:
            return base
        n = 2
        while f"{base} ({n})" in names:
            n += 1
        return f"{base} ({n})"

    # ---- 编辑操作 ----

    async def save_settings(self, collection: Sequence[ApiSetting]) -> None:
        """设置页整体保存：先校验再一次性写入。"""

        validate_settings(collection)
        await self.set_api_settings(collection)

    async def find_setting(self, name: str) -> ApiSetting:
        collection = await self.get_api_settings()
        idx = _index_of(collection, name)
        if idx < 0:
            raise SettingNotFoundError(
                code="SETTING_NOT_FOUND",
                message=f"API setting not found: {name}",
                name=name,
            )
        return collection[idx]

    async def add_setting(self, setting: ApiSetting) -> List[ApiSetting]:
        _check_required(setting)
        collection = await self.get_api_settings()
        _check_name_free(collection, setting.name)
        collection.append(setting)
        await self.set_api_settings(collection)
        return collection

    async def update_setting(self, original_name: str, setting: ApiSetting) -> List[ApiSetting]:
        _check_required(setting)
        collection = await self.get_api_settings()
        idx = _index_of(collection, original_name)
        if idx < 0:
            raise SettingNotFoundError(
                code="SETTING_NOT_FOUND",
                message=f"API setting not found: {original_name}",
                name=original_name,
            )
        _check_name_free(collection, setting.name, skip_index=idx)
        collection[idx] = setting
        await self.set_api_settings(collection)

        ref = await self._read_selected_ref()
        if ref is not None and ref.name == original_name:
            await self.set_selected_setting(setting)
        return collection

    async def remove_setting(self, name: str) -> List[ApiSetting]:
        collection = await self.get_api_settings()
        idx = _index_of(collection, name)
        if idx < 0:
            raise SettingNotFoundError(
                code="SETTING_NOT_FOUND",
                message=f"API setting not found: {name}",
                name=name,
            )
        del collection[idx]
        await self.set_api_settings(collection)
        return collection

    async def get_stored_api_key(self, provider: Union[Provider, str]) -> Optional[str]:
        provider = Provider.parse(provider)
        for s in await self.get_api_settings():
            if s.provider == provider:
                return s.api_key or None
        return None

    async def set_stored_api_key(
        self,
        provider: Union[Provider, str],
        api_key: str,
        name: Optional[str] = None,
        model: Optional[str] = None,
    ) -> None:
        """按 Provider 新增或覆盖一条配置。"""

        provider = Provider.parse(provider)
        setting = ApiSetting(name=name or provider.value, provider=provider, api_key=api_key, model=model)
        _check_required(setting)
        collection = await self.get_api_settings()
        idx = next((i for i, s in enumerate(collection) if s.provider == provider), -1)
        _check_name_free(collection, setting.name, skip_index=idx)
        if idx >= 0:
            collection[idx] = setting
        else:
            collection.append(setting)
        await self.set_api_settings(collection)

    async def clear_all(self) -> None:
        await self._store.clear()

    @staticmethod
    def _log_error(message: str, err: BusinessError) -> None:
        log_event(logging.ERROR, message, {}, code=err.code, error=err.message, **err.extra)
