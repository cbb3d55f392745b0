"""
Seen alert id store for capwatch.

This module keeps the id set of the previous pipeline run so that
new alerts can be diffed out and announced exactly once.
"""

import json
from typing import Iterable, List, Set

from capwatch.ports.kvstore import KVStorePort
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.seen")

class SeenAlertStore:
    """이전 실행의 경보 ID 집합 저장소"""

    def __init__(self, kv: KVStorePort, key: str = "capwatch.seen_alert_ids"):
        self.kv = kv
        self.key = key

    async def load(self) -> Set[str]:
        """저장된 ID 집합을 읽습니다 (손상된 값은 빈 집합)."""
        raw = await self.kv.get(self.key)
        if not raw:
            return set()
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            log.warning(f"저장된 경보 ID 목록 손상, 초기화 key:{self.key}")
            return set()
        if not isinstance(ids, list):
            return set()
        return {str(i) for i in ids}

    async def replace(self, ids: Iterable[str]) -> None:
        """현재 실행의 ID 집합으로 교체합니다."""
        await self.kv.set(self.key, json.dumps(sorted(set(ids))))

    async def diff_and_replace(self, ids: List[str]) -> List[str]:
        """
        이전 집합에 없던 ID 를 찾은 뒤 현재 집합으로 교체합니다.

        Args:
            ids: 현재 실행의 경보 ID (순서 유지)

        Returns:
            새로 발견된 ID 목록
        """
        previous = await self.load()
        new_ids = [i for i in dict.fromkeys(ids) if i not in previous]
        await self.replace(ids)
        return new_ids
