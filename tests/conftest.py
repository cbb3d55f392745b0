"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
네트워크는 사용하지 않으며, 전송 계층은 FakeTransport 로 대체합니다.
"""

import os
import tempfile
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from capwatch.adapters.storage.memory_kv import MemoryKVStore
from capwatch.ports.transport import TransportResponse
from capwatch.settings import Settings

# 고정 기준 시각 (2025-01-15 12:00 UTC)
FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

CAP_NS = "urn:oasis:names:tc:emergency:cap:1.2"

# Lévis/Québec 일대를 덮는 폴리곤 (위도,경도 순 CAP 표기)
QUEBEC_POLYGON = "46.5,-71.6 47.1,-71.6 47.1,-70.8 46.5,-70.8 46.5,-71.6"


def cap_xml(identifier: Optional[str] = "urn:test:1",
            headline: Optional[str] = "Winter Storm Warning in effect",
            severity: str = "Severe",
            urgency: str = "Expected",
            certainty: str = "Likely",
            sent: Optional[str] = "2025-01-15T10:00:00-00:00",
            effective: Optional[str] = "2025-01-15T10:00:00-00:00",
            expires: Optional[str] = "2025-01-16T10:00:00-00:00",
            description: str = "Heavy snow expected.",
            area_desc: str = "Lévis",
            polygons: Sequence[str] = (QUEBEC_POLYGON,),
            circles: Sequence[str] = (),
            msg_type: str = "Alert",
            references: Optional[str] = None,
            infos: Optional[List[str]] = None,
            language: str = "en-CA") -> bytes:
    """테스트용 CAP 1.2 문서를 만듭니다."""

    def _opt(tag: str, value: Optional[str]) -> str:
        return f"<{tag}>{value}</{tag}>" if value is not None else ""

    if infos is None:
        shapes = "".join(f"<polygon>{p}</polygon>" for p in polygons)
        shapes += "".join(f"<circle>{c}</circle>" for c in circles)
        infos = [
            f"<info>"
            f"<language>{language}</language>"
            f"<event>weather</event>"
            f"<urgency>{urgency}</urgency>"
            f"<severity>{severity}</severity>"
            f"<certainty>{certainty}</certainty>"
            f"{_opt('effective', effective)}"
            f"{_opt('expires', expires)}"
            f"{_opt('headline', headline)}"
            f"<description>{description}</description>"
            f"<area><areaDesc>{area_desc}</areaDesc>{shapes}</area>"
            f"</info>"
        ]

    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<alert xmlns="{CAP_NS}">'
        f"{_opt('identifier', identifier)}"
        f"<sender>cap-pac@canada.ca</sender>"
        f"{_opt('sent', sent)}"
        f"<status>Actual</status>"
        f"<msgType>{msg_type}</msgType>"
        f"<scope>Public</scope>"
        f"{_opt('references', references)}"
        f"{''.join(infos)}"
        f"</alert>"
    ).encode("utf-8")


Route = Union[Tuple[int, bytes], BaseException]


class FakeTransport:
    """URL → (상태, 본문) 또는 예외를 돌려주는 테스트용 전송"""

    def __init__(self, routes: Optional[Dict[str, Route]] = None, name: str = "fake",
                 default_status: int = 404):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.name = name
        self.default_status = default_status
        self.calls: List[str] = []

    async def get(self, url: str) -> TransportResponse:
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return TransportResponse(status=self.default_status)
        if isinstance(route, BaseException):
            raise route
        status, body = route
        return TransportResponse(status=status, body=body)


def listing_html(*hrefs: str) -> bytes:
    """디렉터리 목록 HTML 을 만듭니다."""
    rows = "".join(f'<a href="{h}">{h}</a>\n' for h in ("../",) + hrefs)
    return f"<html><body><pre>{rows}</pre></body></html>".encode("utf-8")


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def fixed_clock():
    """고정 시각 공급자"""
    return lambda: FIXED_NOW


@pytest.fixture
def memory_kv():
    """테스트용 메모리 키-값 저장소"""
    return MemoryKVStore()


@pytest.fixture
def sample_settings():
    """테스트용 설정 (재시도 지연 없음, 내일 폴더 제외)"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.fetch.retry_backoff_sec = 0.0
    settings.fetch.timeout_sec = 1.0
    settings.discovery.include_tomorrow = False
    settings.discovery.trailing_days = 0
    return settings


@pytest.fixture
def sample_polygon():
    """(경도, 위도) 순서의 닫힌 사각형 링"""
    return [(-71.6, 46.5), (-71.6, 47.1), (-70.8, 47.1), (-70.8, 46.5), (-71.6, 46.5)]


def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line("markers", "integration: 여러 구성요소를 가짜 전송으로 연결한 테스트")


@pytest.fixture
def make_cap():
    """CAP 문서 생성 함수"""
    return cap_xml


@pytest.fixture
def make_listing():
    """디렉터리 목록 HTML 생성 함수"""
    return listing_html


@pytest.fixture
def fake_transport():
    """FakeTransport 생성 함수"""
    return FakeTransport
