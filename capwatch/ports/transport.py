"""
Document transport port interface.

This module defines the uniform contract every retrieval strategy
(direct access or an intermediary proxy) implements.
"""

from typing import Protocol
from pydantic import BaseModel

class TransportResponse(BaseModel):
    """전송 계층 응답"""
    status: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300 and bool(self.body)

    @property
    def not_found(self) -> bool:
        return self.status in (404, 410)

class TransportPort(Protocol):
    """문서 전송 포트 인터페이스"""

    name: str

    async def get(self, url: str) -> TransportResponse:
        """
        URL 의 원문을 가져옵니다.

        Args:
            url: 원본 문서 URL (프록시 전송은 내부에서 주소를 변환)

        Returns:
            HTTP 상태와 본문

        Raises:
            asyncio.TimeoutError, aiohttp.ClientError, OSError: 연결 실패
        """
        ...
