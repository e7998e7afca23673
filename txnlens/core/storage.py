"""
Local key-value storage

Small JSON documents (prediction cache, monitoring windows) persisted as one
file per key under a private directory. Reads and writes run in a worker
thread so callers on the event loop only await them.
"""

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class LocalStore:
    """JSON file-backed key-value store"""

    def __init__(self, root_dir: str):
        """
        Args:
            root_dir: Directory holding one ``<key>.json`` file per key
        """
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key)
        return self.root_dir / f"{safe}.json"

    def read(self, key: str) -> Optional[Any]:
        """Return the decoded value for ``key`` or None if missing or unreadable"""
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read local store key %s: %s", key, e)
            return None

    def write(self, key: str, value: Any) -> None:
        """Atomically replace the value stored under ``key``"""
        path = self._path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(value, f, ensure_ascii=False)
        os.replace(tmp_path, path)

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()

    async def get_item(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self.read, key)

    async def set_item(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self.write, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self.remove, key)
