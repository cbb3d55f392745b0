"""
HTTP transports for capwatch.

This module provides the aiohttp-backed document transports: a
direct transport and prefix-style intermediary proxies, all sharing
one client session owned by CapHttpClient.
"""

import aiohttp
from typing import Dict, List, Optional
from urllib.parse import quote

from capwatch.ports.transport import TransportPort, TransportResponse
from capwatch.settings import FetchConfig, ProxyConfig
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.http")

ACCEPT_HEADER = "application/xml, text/xml, */*"


class DirectTransport:
    """원본 서버에 직접 요청하는 전송"""

    def __init__(self, session: aiohttp.ClientSession, name: str = "direct"):
        self.session = session
        self.name = name

    def target_url(self, url: str) -> str:
        return url

    def extra_headers(self) -> Dict[str, str]:
        return {}

    async def get(self, url: str) -> TransportResponse:
        """
        문서를 요청합니다.

        Args:
            url: 원본 문서 URL

        Returns:
            HTTP 상태와 본문
        """
        async with self.session.get(self.target_url(url), headers=self.extra_headers()) as response:
            body = await response.read() if response.status < 300 else b""
            return TransportResponse(status=response.status, body=body)


class ProxyTransport(DirectTransport):
    """접두어 방식 중계 프록시를 통한 전송"""

    def __init__(self, session: aiohttp.ClientSession, config: ProxyConfig):
        super().__init__(session, name=config.name)
        self.config = config

    def target_url(self, url: str) -> str:
        """
        프록시 요청 URL 을 만듭니다.

        Args:
            url: 원본 문서 URL

        Returns:
            프록시 접두어가 붙은 URL (설정에 따라 원본 URL 인코딩)
        """
        target = quote(url, safe="") if self.config.encode else url
        return f"{self.config.prefix}{target}"

    def extra_headers(self) -> Dict[str, str]:
        return dict(self.config.headers)


class CapHttpClient:
    """전송 목록과 공유 세션을 관리하는 HTTP 클라이언트"""

    def __init__(self, config: FetchConfig):
        """
        초기화합니다.

        Args:
            config: 가져오기 설정
        """
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        self.session = aiohttp.ClientSession(
            headers={
                "Accept": ACCEPT_HEADER,
                "User-Agent": self.config.user_agent,
            },
            # 개별 요청 타임아웃은 오케스트레이터가 관리, 세션은 상한만 둠
            timeout=aiohttp.ClientTimeout(total=self.config.timeout_sec * 2),
        )
        log.info(f"HTTP 세션 시작 proxies:{[p.name for p in self.config.proxies]}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session:
            await self.session.close()
            self.session = None

    def transports(self) -> List[TransportPort]:
        """
        설정 순서대로 전송 목록을 만듭니다 (직접 전송 우선).

        Returns:
            전송 목록
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        transports: List[TransportPort] = []
        if self.config.use_direct:
            transports.append(DirectTransport(self.session))
        transports.extend(ProxyTransport(self.session, p) for p in self.config.proxies)
        return transports
