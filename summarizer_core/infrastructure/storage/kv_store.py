"""外部 key-value 存储。

ContentCache 只依赖 KeyValueStore 协议：一个 key 对应一条 JSON 可序列化记录。
- JsonKeyValueStore: 每个 key 一个 JSON 文件，写入走临时文件 + os.replace。
- MemoryKeyValueStore: 进程内实现，用于测试或无需持久化的场景。

读写失败统一抛 CacheError，由调用方决定是否降级。
"""

import asyncio
import copy
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from uuid import uuid4

from summarizer_core.config.settings import settings
from summarizer_core.domain.exceptions import CacheError


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonKeyValueStore(KeyValueStore):
    def __init__(self, root: str | Path | None = None):
        self._root = (Path(root or settings.storage_root) / "kv").resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise CacheError(code="STORE_KEY_ERROR", message=f"Invalid store key: {key!r}")
        return self._root / f"{key}.json"

    def _read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CacheError(code="STORE_READ_ERROR", message=str(e))

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = self._root / f"{key}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise CacheError(code="STORE_WRITE_ERROR", message=str(e))

    def _delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise CacheError(code="STORE_DELETE_ERROR", message=str(e))


class MemoryKeyValueStore(KeyValueStore):
    """进程内存储；读写都做深拷贝，模拟序列化边界。"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)
