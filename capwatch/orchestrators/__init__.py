"""
Orchestrators for capwatch.

This package contains the fetch orchestration over ordered
transports and the end-to-end alert pipeline that coordinates
discovery, parsing, relevance, conflation and notification.
"""
