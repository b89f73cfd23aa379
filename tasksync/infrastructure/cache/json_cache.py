from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

from tasksync.utils import get_base_path, utc_now_iso


logger = logging.getLogger(__name__)


class JsonCache:
    """Named JSON slots on disk, read and written wholesale."""

    def __init__(self, cache_dir: str | None = None):
        base = get_base_path()
        self.cache_dir = cache_dir or os.path.join(base, "data", "cache")
        os.makedirs(self.cache_dir, exist_ok=True)

    def save(self, name: str, payload: Any) -> None:
        path = self._path(name)
        wrapper = {
            "cached_at": utc_now_iso(),
            "payload": payload,
        }
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as file:
            json.dump(wrapper, file, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)

    def load(self, name: str) -> dict | None:
        path = self._path(name)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as file:
                wrapper = json.load(file)
        except (OSError, json.JSONDecodeError):
            logger.warning("Cache slot %s is unreadable; ignoring it.", name)
            return None
        if not isinstance(wrapper, dict) or "payload" not in wrapper:
            logger.warning("Cache slot %s has an unexpected layout; ignoring it.", name)
            return None
        return wrapper

    def remove(self, name: str) -> None:
        try:
            os.remove(self._path(name))
        except FileNotFoundError:
            pass

    # Coroutine wrappers; file I/O runs off the event loop.

    async def read(self, name: str) -> Any:
        wrapper = await asyncio.to_thread(self.load, name)
        return None if wrapper is None else wrapper["payload"]

    async def write(self, name: str, payload: Any) -> None:
        await asyncio.to_thread(self.save, name, payload)

    async def delete(self, name: str) -> None:
        await asyncio.to_thread(self.remove, name)

    def _path(self, name: str) -> str:
        safe_name = name.replace("/", "_")
        return os.path.join(self.cache_dir, f"{safe_name}.json")
