"""命名空间键值存储。

两种可互换的实现：

- JsonFileKeyValueStore: 对应扩展自带的持久化存储，整个命名空间落在一个 JSON 文件里，
  写入时先写临时文件再 os.replace，保证单次写入的原子性。
- MemoryKeyValueStore: 对应同源 fallback 存储，只在当前进程内有效。

具体使用哪一种由 create_key_value_store 在进程启动时决定，运行期间不会混用。
值一律是字符串，JSON 编解码由调用方负责。
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, Union
from uuid import uuid4

from page_chat.config.settings import Settings, settings as default_settings
from page_chat.domain.exceptions import StorageError
from page_chat.infrastructure.logging.logger import logger


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def remove(self, keys: Union[str, Iterable[str]]) -> None:
        ...

    async def clear(self) -> None:
        ...


def _as_keys(keys: Union[str, Iterable[str]]) -> list[str]:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    async def remove(self, keys: Union[str, Iterable[str]]) -> None:
        for key in _as_keys(keys):
            self._data.pop(key, None)

    async def clear(self) -> None:
        self._data.clear()


class JsonFileKeyValueStore:
    def __init__(self, root: str | Path | None = None, namespace: str = "page_chat"):
        self._root = Path(root or default_settings.storage_root).resolve()
        self._path = self._root / f"{namespace}.json"
        # 每次写入都是整文件读-改-写，同一实例上的操作必须串行
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._update, {key: str(value)}, [])

    async def remove(self, keys: Union[str, Iterable[str]]) -> None:
        async with self._lock:
            await asyncio.to_thread(self._update, {}, _as_keys(keys))

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write_all, {})

    def _read_all(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StorageError(code="STORE_READ_ERROR", message=str(e), path=str(self._path))
        except json.JSONDecodeError as e:
            raise StorageError(code="STORE_DECODE_ERROR", message=str(e), path=str(self._path))
        if not isinstance(data, dict):
            raise StorageError(
                code="STORE_DECODE_ERROR",
                message="Storage file is not a JSON object",
                path=str(self._path),
            )
        return data

    def _update(self, items: Dict[str, str], removed: list[str]) -> None:
        data = self._read_all()
        data.update(items)
        for key in removed:
            data.pop(key, None)
        self._write_all(data)

    def _write_all(self, data: Dict[str, str]) -> None:
        tmp_path = self._root / f"{self._path.stem}.{uuid4().hex}.json.tmp"
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StorageError(code="STORE_WRITE_ERROR", message=str(e), path=str(self._path))


def _storage_root_writable(root: Path) -> bool:
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(root, os.W_OK)


def create_key_value_store(cfg: Settings = default_settings) -> KeyValueStore:
    """按配置与运行环境选择键值存储实现（进程启动时调用一次）。"""

    backend = cfg.storage_backend
    if backend == "memory":
        store: KeyValueStore = MemoryKeyValueStore()
    elif backend == "file" or _storage_root_writable(Path(cfg.storage_root)):
        store = JsonFileKeyValueStore(root=cfg.storage_root, namespace=cfg.storage_namespace)
    else:
        store = MemoryKeyValueStore()
    logger.info(
        "Selected key-value store",
        extra={"extra": {"backend": backend, "store": type(store).__name__}},
    )
    return store
