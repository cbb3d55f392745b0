"""
Shared geometry and retry helpers for capwatch.
"""
