"""
capwatch: severe-weather CAP alert discovery, relevance matching and conflation.
"""

__version__ = "0.3.0"
