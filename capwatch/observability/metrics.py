"""
Metrics definitions for capwatch.

This module defines Prometheus metrics for monitoring
discovery, fetching, parsing and the alert pipeline.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
candidates_discovered = Counter(
    "capwatch_candidates_discovered_total",
    "Number of candidate documents proposed by discovery",
    ["tier"]
)

fetch_requests = Counter(
    "capwatch_fetch_requests_total",
    "Fetch attempts per transport and outcome",
    ["transport", "outcome"]
)

documents_parsed = Counter(
    "capwatch_documents_parsed_total",
    "Parsed documents by outcome",
    ["outcome"]
)

alerts_relevant = Counter(
    "capwatch_alerts_relevant_total",
    "Alerts matched to the caller location, by matching tier",
    ["tier"]
)

new_alerts = Counter(
    "capwatch_new_alerts_total",
    "Alerts seen for the first time"
)

pipeline_runs = Counter(
    "capwatch_pipeline_runs_total",
    "Pipeline invocations by outcome",
    ["outcome"]
)

# 히스토그램 메트릭
fetch_seconds = Histogram(
    "capwatch_fetch_duration_seconds",
    "Time spent fetching one document across all transports",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

pipeline_seconds = Histogram(
    "capwatch_pipeline_duration_seconds",
    "End-to-end pipeline latency",
    buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0]
)

# 게이지 메트릭
path_cache_size = Gauge(
    "capwatch_path_cache_size",
    "Number of remembered document paths"
)

current_alerts = Gauge(
    "capwatch_current_alerts",
    "Relevant alerts returned by the last pipeline run"
)
