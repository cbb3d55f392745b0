"""
Adapters for capwatch hexagonal architecture.

This module contains the concrete implementations of port interfaces
that handle external I/O and infrastructure concerns.
"""

from .storage import SQLiteKVStore, MemoryKVStore, SeenAlertStore
from .http import CapHttpClient, DirectTransport, ProxyTransport
from .notifier import QueueNotifier

__all__ = [
    "SQLiteKVStore", "MemoryKVStore", "SeenAlertStore",
    "CapHttpClient", "DirectTransport", "ProxyTransport", "QueueNotifier",
]
