"""
Alert notification port interface.

This module defines the protocol for surfacing newly seen alerts.
"""

from typing import Protocol
from capwatch.core.models import AlertEvent

class AlertNotifierPort(Protocol):
    """새 경보 알림 포트 인터페이스"""

    async def notify(self, event: AlertEvent) -> None:
        """
        새 경보 알림을 전달합니다.

        Args:
            event: 알림 이벤트
        """
        ...
