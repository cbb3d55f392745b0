"""
HTTP adapters for capwatch.
"""

from .client import CapHttpClient, DirectTransport, ProxyTransport

__all__ = ["CapHttpClient", "DirectTransport", "ProxyTransport"]
