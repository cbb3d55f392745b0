"""
Queue-backed alert notifier for capwatch.

This module implements AlertNotifierPort with an asyncio queue
that the service shell (or any other consumer) drains.
"""

import asyncio

from capwatch.core.models import AlertEvent
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.notifier")

class QueueNotifier:
    """asyncio.Queue 기반 알림 전달기"""

    def __init__(self, maxsize: int = 100):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def notify(self, event: AlertEvent) -> None:
        """
        알림 이벤트를 큐에 넣습니다. 큐가 가득 차면 가장 오래된 이벤트를 버립니다.

        Args:
            event: 알림 이벤트
        """
        if self.queue.full():
            dropped = self.queue.get_nowait()
            log.warning(f"알림 큐 가득 참, 오래된 이벤트 폐기 alert_id:{dropped.alert_id}")
        self.queue.put_nowait(event)
        log.info(f"새 경보 알림 등록 alert_id:{event.alert_id} title:{event.title}")

    def drain(self) -> list:
        """대기 중인 이벤트를 모두 꺼냅니다."""
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events
