"""
Discovered-path cache for capwatch.

This module remembers the most recent document paths that resolved
to real documents. The list is persisted through a KVStorePort,
bounded to the last N entries, and merged on write so concurrent
writers converge on "last N wins" without a lock.
"""

import json
from typing import Iterable, List

from capwatch.ports.kvstore import KVStorePort
from capwatch.observability import metrics
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.path_cache")


class DiscoveredPathCache:
    """최근 성공 경로 캐시 (최대 N개, FIFO 방출)"""

    def __init__(self, kv: KVStorePort, *, key: str = "capwatch.discovered_paths", max_size: int = 10):
        """
        초기화합니다.

        Args:
            kv: 키-값 저장소
            key: 저장 키
            max_size: 보관할 최대 경로 수
        """
        if max_size < 1:
            raise ValueError("max_size 는 1 이상이어야 합니다")
        self.kv = kv
        self.key = key
        self.max_size = max_size

    async def load(self) -> List[str]:
        """
        저장된 경로를 오래된 순으로 읽습니다.

        Returns:
            경로 목록 (손상되었거나 없으면 빈 목록)
        """
        raw = await self.kv.get(self.key)
        if not raw:
            return []
        try:
            paths = json.loads(raw)
        except json.JSONDecodeError:
            log.warning(f"경로 캐시 손상, 무시 key:{self.key}")
            return []
        if not isinstance(paths, list):
            return []
        return [p for p in paths if isinstance(p, str)][-self.max_size:]

    async def remember(self, paths: Iterable[str]) -> List[str]:
        """
        새 경로를 병합하여 저장합니다.

        저장 직전에 현재 값을 다시 읽어 합치고, 다시 등장한 경로는 최신 위치로
        옮긴 뒤 마지막 N개만 남깁니다.

        Args:
            paths: 성공한 문서 경로

        Returns:
            저장된 경로 목록
        """
        new_paths = [p for p in dict.fromkeys(paths) if p]
        if not new_paths:
            return await self.load()

        merged = [p for p in await self.load() if p not in new_paths]
        merged.extend(new_paths)
        merged = merged[-self.max_size:]

        await self.kv.set(self.key, json.dumps(merged))
        metrics.path_cache_size.set(len(merged))
        log.debug(f"경로 캐시 갱신 added:{len(new_paths)} size:{len(merged)}")
        return merged
