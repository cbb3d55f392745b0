"""
End-to-end alert pipeline for capwatch.

This module coordinates one invocation: discovery proposes
candidates, missing payloads are fetched with bounded concurrency,
documents are parsed, filtered by relevance to the caller's
coordinate and conflated, then formatted for display. Only after
the whole run succeeds are the discovered-path cache and the seen
alert ids updated, so a cancelled or timed-out run leaves no trace.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

from capwatch.adapters.storage.seen_alerts import SeenAlertStore
from capwatch.core.cap_parser import parse_cap
from capwatch.core.conflation import conflate, drop_expired, prune_superseded
from capwatch.core.feed_parser import parse_feed
from capwatch.core.formatting import build_event, format_alert, sort_alerts
from capwatch.core.gazetteer import DEFAULT_ENTRIES, LocalityMatch, RegionGazetteer
from capwatch.core.models import Alert, AlertParseError, AlertView, Coordinate
from capwatch.core.relevance import evaluate_relevance
from capwatch.discovery.discoverer import Candidate, ResourceDiscovery
from capwatch.discovery.path_cache import DiscoveredPathCache
from capwatch.orchestrators.fetcher import FetchOrchestrator
from capwatch.ports.kvstore import KVStorePort
from capwatch.ports.notify import AlertNotifierPort
from capwatch.ports.transport import TransportPort
from capwatch.settings import Settings
from capwatch.observability import metrics
from capwatch.observability.logging_setup import get_logger, with_context

log = get_logger("capwatch.pipeline")

PointInput = Union[Coordinate, Mapping[str, Any], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_coordinate(point: PointInput) -> Coordinate:
    """
    호출자 좌표를 Coordinate 로 변환합니다.

    Raises:
        ValueError: 좌표가 없거나 유효하지 않은 경우
    """
    if point is None:
        raise ValueError("좌표가 필요합니다")
    if isinstance(point, Coordinate):
        return point
    # pydantic ValidationError 는 ValueError 의 하위 클래스
    return Coordinate.model_validate(point)


class AlertPipeline:
    """경보 탐색 → 가져오기 → 해석 → 관련성 → 병합 파이프라인"""

    def __init__(self,
                 discovery: ResourceDiscovery,
                 *,
                 settings: Optional[Settings] = None,
                 gazetteer: Optional[RegionGazetteer] = None,
                 seen_store: Optional[SeenAlertStore] = None,
                 notifier: Optional[AlertNotifierPort] = None,
                 clock: Callable[[], datetime] = _utc_now):
        """
        초기화합니다.

        Args:
            discovery: 후보 문서 탐색기
            settings: 전체 설정
            gazetteer: 이름 기반 폴백용 지명 사전
            seen_store: 이전 실행의 경보 ID 저장소 (없으면 알림 생략)
            notifier: 새 경보 알림 포트
            clock: 현재 UTC 시각 공급자
        """
        self.discovery = discovery
        self.settings = settings or Settings()
        self.gazetteer = gazetteer or RegionGazetteer(
            DEFAULT_ENTRIES, self.settings.matching.gazetteer_max_distance_km
        )
        self.seen_store = seen_store
        self.notifier = notifier
        self.clock = clock

    async def run(self, point: PointInput, *, deadline_sec: Optional[float] = None) -> List[AlertView]:
        """
        좌표에 영향을 주는 현재 경보 목록을 계산합니다.

        Args:
            point: 호출자 좌표 ({latitude, longitude})
            deadline_sec: 전체 실행 제한 시간 (초), None 이면 제한 없음

        Returns:
            표시용 경보 목록 (심각도, 최신 순). 찾은 문서가 없으면 빈 목록

        Raises:
            ValueError: 좌표가 없거나 유효하지 않은 경우
            asyncio.TimeoutError: 제한 시간을 넘긴 경우 (부분 결과는 폐기)
        """
        coordinate = to_coordinate(point)
        started = time.perf_counter()

        with with_context(run_id=uuid.uuid4().hex[:8]):
            try:
                if deadline_sec is not None:
                    views = await asyncio.wait_for(self._run(coordinate), timeout=deadline_sec)
                else:
                    views = await self._run(coordinate)
            except asyncio.TimeoutError:
                metrics.pipeline_runs.labels(outcome="timeout").inc()
                log.warning(f"파이프라인 제한 시간 초과 deadline:{deadline_sec}s")
                raise
            except asyncio.CancelledError:
                metrics.pipeline_runs.labels(outcome="cancelled").inc()
                log.info("파이프라인 취소됨")
                raise
            finally:
                metrics.pipeline_seconds.observe(time.perf_counter() - started)

        metrics.pipeline_runs.labels(outcome="ok").inc()
        metrics.current_alerts.set(len(views))
        return views

    async def _run(self, coordinate: Coordinate) -> List[AlertView]:
        locality = self.gazetteer.resolve(coordinate.as_lonlat())
        discovered = await self.discovery.discover(locality)
        if not discovered.candidates:
            # 후보가 없는 실행은 이전 경보 ID 를 바꾸지 않음
            log.info("후보 문서 없음, 빈 결과 반환")
            return []

        candidates = await self._fetch_missing(discovered.candidates)
        alerts, parsed_paths = self.parse_candidates(candidates)
        current = self.select_current(coordinate, alerts, locality)
        views = [format_alert(a) for a in current]

        # 커밋 단계: 실행이 끝까지 성공한 경우에만 공유 상태 갱신
        await self.discovery.remember(parsed_paths)
        await self._announce(current)

        log.info(f"파이프라인 완료 candidates:{len(candidates)} parsed:{len(alerts)} current:{len(views)}")
        return views

    async def _fetch_missing(self, candidates: Sequence[Candidate]) -> List[Candidate]:
        """본문이 없는 후보만 동시 실행 제한 하에 가져옵니다."""
        missing = [c for c in candidates if c.payload is None]
        if missing:
            semaphore = asyncio.Semaphore(self.settings.discovery.concurrency)
            results = await self.discovery.fetcher.fetch_many([c.url for c in missing], semaphore)
            fetched = {c.path: r.payload for c, r in zip(missing, results) if r.ok}
        else:
            fetched = {}

        ready = []
        for candidate in candidates:
            if candidate.payload is not None:
                ready.append(candidate)
            elif candidate.path in fetched:
                ready.append(candidate.model_copy(update={"payload": fetched[candidate.path]}))
        return ready

    def parse_candidates(self, candidates: Sequence[Candidate]) -> Tuple[List[Alert], List[str]]:
        """
        후보 본문을 해석합니다. 손상된 문서는 건너뜁니다.

        Args:
            candidates: 본문이 채워진 후보 목록

        Returns:
            (경보 목록, 해석에 성공한 CAP 문서 경로 목록)
        """
        alerts: List[Alert] = []
        parsed_paths: List[str] = []
        language = self.settings.source.preferred_language

        for candidate in candidates:
            try:
                if candidate.kind == "feed":
                    alerts.extend(parse_feed(candidate.payload, candidate.url,
                                             candidate.region_code or "ca"))
                else:
                    alerts.append(parse_cap(candidate.payload, candidate.url,
                                            preferred_language=language))
                    parsed_paths.append(candidate.path)
                metrics.documents_parsed.labels(outcome="ok").inc()
            except AlertParseError as e:
                metrics.documents_parsed.labels(outcome="error").inc()
                log.warning(f"문서 해석 실패, 건너뜀 path:{candidate.path} reason:{e.reason}")

        return alerts, parsed_paths

    def select_current(self,
                       coordinate: Coordinate,
                       alerts: Sequence[Alert],
                       locality: Optional[LocalityMatch] = None) -> List[Alert]:
        """
        만료/대체 경보를 제거하고 관련 경보만 골라 병합합니다.

        Args:
            coordinate: 호출자 좌표
            alerts: 해석된 경보 목록
            locality: 좌표의 지명 조회 결과

        Returns:
            심각도, 최신 순으로 정렬된 현재 경보 목록
        """
        conflation = self.settings.conflation
        candidates = list(alerts)
        if conflation.drop_expired:
            candidates = drop_expired(candidates, self.clock())
        if conflation.honor_references:
            candidates = prune_superseded(candidates)

        relevant = []
        for alert in candidates:
            decision = evaluate_relevance(
                coordinate, alert,
                buffer_km=self.settings.matching.buffer_km,
                gazetteer=self.gazetteer,
                locality=locality,
            )
            if decision.affected:
                metrics.alerts_relevant.labels(tier=decision.tier).inc()
                log.debug(f"관련 경보 id:{alert.id} tier:{decision.tier} reason:{decision.reason}")
                relevant.append(alert)

        return sort_alerts(conflate(relevant))

    async def _announce(self, current: Sequence[Alert]) -> None:
        """이전 실행에 없던 경보 ID 에 대해 알림 이벤트를 보냅니다."""
        if self.seen_store is None or not self.settings.notifications.enabled:
            return
        new_ids = set(await self.seen_store.diff_and_replace([a.id for a in current]))
        if not new_ids:
            return
        metrics.new_alerts.inc(len(new_ids))
        if self.notifier is None:
            return
        for alert in current:
            if alert.id in new_ids:
                await self.notifier.notify(build_event(alert))


def build_pipeline(settings: Settings,
                   kv: KVStorePort,
                   transports: Sequence[TransportPort],
                   *,
                   notifier: Optional[AlertNotifierPort] = None,
                   clock: Callable[[], datetime] = _utc_now) -> AlertPipeline:
    """
    설정으로부터 파이프라인 구성요소를 조립합니다.

    Args:
        settings: 전체 설정
        kv: 경로 캐시/경보 ID 를 보관할 키-값 저장소
        transports: 시도 순서대로 정렬된 전송 목록
        notifier: 새 경보 알림 포트
        clock: 현재 UTC 시각 공급자

    Returns:
        AlertPipeline
    """
    fetcher = FetchOrchestrator(
        transports,
        timeout_sec=settings.fetch.timeout_sec,
        retries_per_transport=settings.fetch.retries_per_transport,
        retry_backoff_sec=settings.fetch.retry_backoff_sec,
    )
    cache = DiscoveredPathCache(
        kv,
        key=settings.discovery.path_cache_key,
        max_size=settings.discovery.path_cache_size,
    )
    discovery = ResourceDiscovery(
        fetcher, cache,
        source=settings.source,
        config=settings.discovery,
        clock=clock,
    )
    seen_store = SeenAlertStore(kv, key=settings.notifications.seen_ids_key)
    return AlertPipeline(
        discovery,
        settings=settings,
        seen_store=seen_store,
        notifier=notifier,
        clock=clock,
    )
