"""
QueueNotifier 단위 테스트

이 모듈은 새 경보 알림 큐의 적재, 배출, 가득 찬 경우의 폐기를 테스트합니다.
"""

import pytest

from capwatch.adapters.notifier import QueueNotifier
from capwatch.core.models import AlertEvent, Severity


def _event(alert_id: str) -> AlertEvent:
    return AlertEvent(alert_id=alert_id, title="Wind Warning", body="Strong winds.",
                      link="https://example/a.cap", severity=Severity.SEVERE)


class TestQueueNotifier:
    """알림 큐 테스트"""

    @pytest.mark.asyncio
    async def test_notify_and_drain(self):
        """적재 순서대로 배출"""
        notifier = QueueNotifier()
        await notifier.notify(_event("a"))
        await notifier.notify(_event("b"))
        assert [e.alert_id for e in notifier.drain()] == ["a", "b"]
        assert notifier.drain() == []

    @pytest.mark.asyncio
    async def test_full_queue_drops_oldest(self):
        """가득 차면 가장 오래된 이벤트 폐기"""
        notifier = QueueNotifier(maxsize=2)
        for alert_id in ("a", "b", "c"):
            await notifier.notify(_event(alert_id))
        assert [e.alert_id for e in notifier.drain()] == ["b", "c"]
