"""
Observability for capwatch: loguru logging, Prometheus metrics and
the FastAPI health/trigger application.
"""
