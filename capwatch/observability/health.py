"""
HTTP endpoints for capwatch.

This module implements health, readiness, metrics, and info endpoints
for monitoring, plus an on-demand alert check for a coordinate.
"""

from typing import Optional
import asyncio
import time

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from pydantic import ValidationError

from capwatch.core.models import Coordinate
from capwatch.settings import Settings
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.http_api")


def create_app(settings: Settings, pipeline=None) -> FastAPI:
    """
    FastAPI 애플리케이션을 생성합니다.

    Args:
        settings: 애플리케이션 설정
        pipeline: 경보 파이프라인 (없으면 /alerts/check 는 503)

    Returns:
        FastAPI 앱
    """
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="capwatch severe-weather alert service"
    )

    start_time = time.time()

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트"""
        if pipeline is None:
            return JSONResponse({
                "status": "not_ready",
                "service": settings.observability.service_name,
                "timestamp": time.time()
            }, status_code=503)
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        return Response(
            generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level,
            "source": settings.source.base_url,
        })

    @app.post("/alerts/check")
    async def check_alerts(payload: dict):
        """좌표에 영향을 주는 현재 경보를 조회합니다."""
        if pipeline is None:
            raise HTTPException(status_code=503, detail="pipeline not configured")

        try:
            point = Coordinate.model_validate(payload)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=f"invalid coordinate: {e.error_count()} error(s)")

        try:
            views = await pipeline.run(point, deadline_sec=settings.scheduler.deadline_sec)
        except asyncio.TimeoutError:
            raise HTTPException(status_code=504, detail="alert check timed out")

        log.info(f"경보 조회 처리 완료 lat:{point.latitude} lon:{point.longitude} count:{len(views)}")
        return {
            "count": len(views),
            "alerts": [v.model_dump(mode="json") for v in views],
        }

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "alerts_check": "/alerts/check"
            }
        })

    return app
