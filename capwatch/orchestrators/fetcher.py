"""
Fetch orchestration for capwatch.

This module turns a document URL into raw bytes by walking an
ordered list of transports (direct first, then proxies). Each
attempt is bounded by a timeout and gets one bounded retry on
timeouts and connection errors. Expected absence (404/410) ends
the walk immediately and, in suppressed mode, is never reported
above debug level.
"""

import asyncio
import time
from enum import Enum
from typing import List, Optional, Sequence

import aiohttp
from pydantic import BaseModel

from capwatch.common.retry import retry_with_backoff
from capwatch.ports.transport import TransportPort, TransportResponse
from capwatch.observability import metrics
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.fetch")

# 재시도 대상 (연결 수준 실패)
RETRYABLE_ERRORS = (asyncio.TimeoutError, aiohttp.ClientConnectionError, OSError)
# 다음 전송으로 넘어가는 실패
TRANSPORT_ERRORS = RETRYABLE_ERRORS + (aiohttp.ClientError,)


class FetchStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class FetchResult(BaseModel):
    """가져오기 결과"""
    url: str
    status: FetchStatus
    payload: Optional[bytes] = None
    transport: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK


class FetchError(Exception):
    """비억제 모드의 가져오기 실패"""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message}: {url}")
        self.url = url


class DocumentNotFound(FetchError):
    """문서가 존재하지 않음 (404/410)"""


class TransportFailure(FetchError):
    """모든 전송이 실패함"""


class _UnexpectedStatus(Exception):
    def __init__(self, status: int):
        super().__init__(f"HTTP {status}")
        self.status = status


class FetchOrchestrator:
    """순서가 정해진 전송 목록을 통한 문서 가져오기"""

    def __init__(self,
                 transports: Sequence[TransportPort],
                 *,
                 timeout_sec: float = 5.0,
                 retries_per_transport: int = 1,
                 retry_backoff_sec: float = 0.5):
        """
        초기화합니다.

        Args:
            transports: 시도 순서대로 정렬된 전송 목록
            timeout_sec: 요청 1회 타임아웃 (초)
            retries_per_transport: 전송별 추가 재시도 횟수
            retry_backoff_sec: 재시도 기본 지연 (초)
        """
        if not transports:
            raise ValueError("전송이 최소 하나 필요합니다")
        self.transports: List[TransportPort] = list(transports)
        self.timeout_sec = timeout_sec
        self.retries_per_transport = retries_per_transport
        self.retry_backoff_sec = retry_backoff_sec

    async def _attempt(self, transport: TransportPort, url: str) -> TransportResponse:
        response = await asyncio.wait_for(transport.get(url), timeout=self.timeout_sec)
        if response.ok or response.not_found:
            return response
        raise _UnexpectedStatus(response.status)

    async def fetch(self, url: str, *, suppressed: bool = True) -> FetchResult:
        """
        문서를 가져옵니다.

        Args:
            url: 원본 문서 URL
            suppressed: True 이면 부재/실패를 빈 결과로 반환하고 로그를 남기지 않음

        Returns:
            가져오기 결과

        Raises:
            DocumentNotFound: 비억제 모드에서 문서가 없는 경우
            TransportFailure: 비억제 모드에서 모든 전송이 실패한 경우
        """
        started = time.perf_counter()
        try:
            return await self._fetch(url, suppressed)
        finally:
            metrics.fetch_seconds.observe(time.perf_counter() - started)

    async def _fetch(self, url: str, suppressed: bool) -> FetchResult:
        last_error: Optional[str] = None

        for transport in self.transports:
            try:
                response = await retry_with_backoff(
                    lambda: self._attempt(transport, url),
                    max_retries=self.retries_per_transport,
                    base_delay=self.retry_backoff_sec,
                    max_delay=self.retry_backoff_sec * 4,
                    retry_on=RETRYABLE_ERRORS,
                )
            except (_UnexpectedStatus,) + TRANSPORT_ERRORS as e:
                last_error = f"{transport.name}: {type(e).__name__} {e}"
                metrics.fetch_requests.labels(transport=transport.name, outcome="failed").inc()
                log.debug(f"전송 실패, 다음 전송 시도 url:{url} {last_error}")
                continue

            if response.not_found:
                # 부재는 정상적인 결과: 다른 프록시도 같은 답을 줌
                metrics.fetch_requests.labels(transport=transport.name, outcome="not_found").inc()
                if not suppressed:
                    raise DocumentNotFound(url, "문서 없음")
                return FetchResult(url=url, status=FetchStatus.NOT_FOUND, transport=transport.name)

            metrics.fetch_requests.labels(transport=transport.name, outcome="ok").inc()
            return FetchResult(url=url, status=FetchStatus.OK,
                               payload=response.body, transport=transport.name)

        if not suppressed:
            log.warning(f"모든 전송 실패 url:{url} last_error:{last_error}")
            raise TransportFailure(url, "모든 전송 실패")
        return FetchResult(url=url, status=FetchStatus.FAILED)

    async def fetch_many(self,
                         urls: Sequence[str],
                         semaphore: asyncio.Semaphore) -> List[FetchResult]:
        """
        동시 실행 수를 제한하여 여러 문서를 가져옵니다 (억제 모드).

        Args:
            urls: 문서 URL 목록
            semaphore: 동시 실행 제한

        Returns:
            입력 순서대로 정렬된 결과 목록
        """
        async def _one(url: str) -> FetchResult:
            async with semaphore:
                return await self.fetch(url)

        return list(await asyncio.gather(*(_one(u) for u in urls)))
