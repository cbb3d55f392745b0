"""
In-memory key-value store for capwatch.

This module implements KVStorePort in process memory; it is used
when no database path is configured and throughout the tests.
"""

import time
from typing import Dict, Optional, Tuple

class MemoryKVStore:
    """프로세스 메모리 기반 키-값 저장소"""

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        value, exp = item
        if exp is not None and exp < time.time():
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_sec: Optional[int] = None) -> None:
        exp = time.time() + ttl_sec if ttl_sec else None
        self._data[key] = (value, exp)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
