"""
Resource discovery for capwatch.

This package locates candidate CAP documents in the date/office/hour
partitioned remote tree without a reliable index, using layered
strategies and a bounded success-path cache.
"""

from .discoverer import Candidate, DiscoveryResult, ResourceDiscovery
from .path_cache import DiscoveredPathCache

__all__ = ["Candidate", "DiscoveryResult", "ResourceDiscovery", "DiscoveredPathCache"]
