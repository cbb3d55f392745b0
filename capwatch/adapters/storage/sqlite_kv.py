"""
SQLite-based key-value store for capwatch.

This module implements KVStorePort on top of SQLite so that the
discovered-path cache and the seen alert ids survive restarts.
"""

import aiosqlite
import time
from typing import Optional
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.kv")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    k TEXT PRIMARY KEY,
    v TEXT NOT NULL,
    exp INTEGER
);
CREATE INDEX IF NOT EXISTS idx_kv_exp ON kv(exp);
"""

class SQLiteKVStore:
    """SQLite 기반 키-값 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        log.info(f"SQLiteKVStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        log.info("SQLiteKVStore 스키마 초기화 완료")

    async def get(self, key: str) -> Optional[str]:
        """
        키로 값을 조회합니다. 만료된 값은 None 으로 취급합니다.

        Args:
            key: 조회할 키

        Returns:
            값 또는 None
        """
        now = int(time.time())
        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "SELECT v FROM kv WHERE k = ? AND (exp IS NULL OR exp >= ?)",
                    (key, now)
                )
                row = await cursor.fetchone()
                return row[0] if row else None
        except aiosqlite.Error as e:
            log.error(f"SQLiteKVStore get 오류 key:{key} error:{e}")
            return None

    async def set(self, key: str, value: str, ttl_sec: Optional[int] = None) -> None:
        """
        키-값을 저장합니다 (기존 값은 덮어씀).

        Args:
            key: 저장할 키
            value: 저장할 값
            ttl_sec: TTL (초), None이면 만료 없음
        """
        exp = int(time.time()) + ttl_sec if ttl_sec else None
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute(
                    "INSERT INTO kv (k, v, exp) VALUES (?, ?, ?) "
                    "ON CONFLICT(k) DO UPDATE SET v = excluded.v, exp = excluded.exp",
                    (key, value, exp)
                )
                await db.commit()
        except aiosqlite.Error as e:
            log.error(f"SQLiteKVStore set 오류 key:{key} error:{e}")

    async def delete(self, key: str) -> None:
        """
        키를 삭제합니다.

        Args:
            key: 삭제할 키
        """
        try:
            async with aiosqlite.connect(self.path) as db:
                await db.execute("DELETE FROM kv WHERE k = ?", (key,))
                await db.commit()
        except aiosqlite.Error as e:
            log.error(f"SQLiteKVStore delete 오류 key:{key} error:{e}")

    async def gc(self, now: Optional[int] = None) -> int:
        """
        만료된 항목들을 정리합니다.

        Args:
            now: 현재 시간 (Unix timestamp), None이면 현재 시간 사용

        Returns:
            삭제된 항목 수
        """
        if now is None:
            now = int(time.time())

        try:
            async with aiosqlite.connect(self.path) as db:
                cursor = await db.execute(
                    "DELETE FROM kv WHERE exp IS NOT NULL AND exp < ?",
                    (now,)
                )
                await db.commit()
                deleted = cursor.rowcount
                if deleted > 0:
                    log.info(f"만료된 항목 {deleted}개 정리됨")
                return deleted
        except aiosqlite.Error as e:
            log.error(f"SQLiteKVStore gc 오류: {e}")
            return 0
