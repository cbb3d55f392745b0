"""
Core domain models and pure functions for capwatch.

This module contains the alert models and the pure parsing,
relevance, conflation and formatting logic that are independent
of external I/O and infrastructure concerns.
"""

from .models import (
    Alert, AlertEvent, AlertParseError, AlertView, Area, Certainty, Circle,
    Coordinate, RelevanceDecision, Severity, Urgency,
)
from .cap_parser import parse_cap
from .feed_parser import parse_feed
from .relevance import evaluate_relevance, is_affected
from .conflation import base_title, conflate
from .formatting import format_alert

__all__ = [
    "Alert", "AlertEvent", "AlertParseError", "AlertView", "Area", "Certainty", "Circle",
    "Coordinate", "RelevanceDecision", "Severity", "Urgency",
    "parse_cap", "parse_feed", "evaluate_relevance", "is_affected",
    "base_title", "conflate", "format_alert",
]
