"""
Port interfaces for capwatch hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the core domain and external adapters.
"""

from .kvstore import KVStorePort
from .notify import AlertNotifierPort
from .transport import TransportPort, TransportResponse

__all__ = ["KVStorePort", "AlertNotifierPort", "TransportPort", "TransportResponse"]
