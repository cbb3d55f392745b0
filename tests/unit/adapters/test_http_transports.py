"""
HTTP 전송 어댑터 단위 테스트

이 모듈은 프록시 주소 생성, 전송 순서, 세션 수명 관리를 테스트합니다.
네트워크 요청은 보내지 않습니다.
"""

import pytest

from capwatch.adapters.http.client import CapHttpClient, DirectTransport, ProxyTransport
from capwatch.settings import FetchConfig, ProxyConfig

URL = "https://dd.weather.gc.ca/alerts/cap/20250115/CWUL/12/a.cap"


class TestProxyTransport:
    """프록시 주소 생성 테스트"""

    def test_encoded_prefix(self):
        """인코딩 프록시는 원본 URL 전체를 퍼센트 인코딩"""
        proxy = ProxyTransport(None, ProxyConfig(name="allorigins", prefix="https://api.allorigins.win/raw?url="))
        assert proxy.target_url(URL) == (
            "https://api.allorigins.win/raw?url="
            "https%3A%2F%2Fdd.weather.gc.ca%2Falerts%2Fcap%2F20250115%2FCWUL%2F12%2Fa.cap"
        )
        assert proxy.name == "allorigins"

    def test_raw_prefix_with_headers(self):
        """비인코딩 프록시는 원본 URL 을 그대로 붙이고 추가 헤더 전송"""
        config = ProxyConfig(name="cors-anywhere", prefix="https://cors-anywhere.herokuapp.com/",
                             encode=False, headers={"X-Requested-With": "XMLHttpRequest"})
        proxy = ProxyTransport(None, config)
        assert proxy.target_url(URL) == f"https://cors-anywhere.herokuapp.com/{URL}"
        assert proxy.extra_headers() == {"X-Requested-With": "XMLHttpRequest"}

    def test_direct(self):
        """직접 전송은 주소를 바꾸지 않음"""
        direct = DirectTransport(None)
        assert direct.target_url(URL) == URL
        assert direct.extra_headers() == {}
        assert direct.name == "direct"


class TestCapHttpClient:
    """HTTP 클라이언트 테스트"""

    def test_transports_require_session(self):
        """세션 없이 전송 목록 요청 시 오류"""
        with pytest.raises(RuntimeError):
            CapHttpClient(FetchConfig()).transports()

    @pytest.mark.asyncio
    async def test_transport_order(self):
        """직접 전송 다음 설정 순서대로 프록시"""
        async with CapHttpClient(FetchConfig()) as client:
            names = [t.name for t in client.transports()]
            assert client.session is not None
        assert names == ["direct", "allorigins", "corsproxy", "cors-anywhere"]
        assert client.session is None

    @pytest.mark.asyncio
    async def test_direct_disabled(self):
        """직접 전송 비활성화"""
        config = FetchConfig(use_direct=False, proxies=[ProxyConfig(name="p", prefix="https://p/?")])
        async with CapHttpClient(config) as client:
            assert [t.name for t in client.transports()] == ["p"]
