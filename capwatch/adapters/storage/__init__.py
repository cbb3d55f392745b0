"""
Storage adapters for capwatch hexagonal architecture.

This module contains the key-value store implementations and the
seen-alert id store built on top of them.
"""

from .sqlite_kv import SQLiteKVStore
from .memory_kv import MemoryKVStore
from .seen_alerts import SeenAlertStore

__all__ = ["SQLiteKVStore", "MemoryKVStore", "SeenAlertStore"]
