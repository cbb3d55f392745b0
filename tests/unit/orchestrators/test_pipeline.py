"""
AlertPipeline 단위/통합 테스트

이 모듈은 탐색 → 가져오기 → 해석 → 관련성 → 병합 → 표시 변환 전체 흐름과
새 경보 알림, 제한 시간, 커밋 시점을 가짜 전송으로 테스트합니다.
"""

import asyncio
import json

import pytest

from capwatch.adapters.notifier import QueueNotifier
from capwatch.core.cap_parser import parse_cap
from capwatch.core.models import Coordinate, Severity
from capwatch.discovery.discoverer import Candidate
from capwatch.orchestrators.pipeline import AlertPipeline, build_pipeline, to_coordinate

ROOT = "https://dd.weather.gc.ca/alerts/cap"
LEVIS = {"latitude": 46.8, "longitude": -71.1}
VANCOUVER_POLYGON = "49.0,-123.4 49.5,-123.4 49.5,-122.8 49.0,-122.8 49.0,-123.4"


class HangingTransport:
    """응답하지 않는 전송"""

    name = "hanging"

    async def get(self, url):
        await asyncio.sleep(10)


async def _seed_cache(kv, settings, names):
    paths = [f"20250110/CWUL/12/{n}" for n in names]
    await kv.set(settings.discovery.path_cache_key, json.dumps(paths))


@pytest.fixture
def documents(make_cap):
    """오늘 날짜 경로 → CAP 문서"""
    return {
        "storm-issued.cap": make_cap(identifier="T1", headline="Winter Storm Warning in effect",
                                     sent="2025-01-15T10:00:00-00:00"),
        "storm-ended.cap": make_cap(identifier="T2", headline="Winter Storm Warning ended",
                                    sent="2025-01-15T11:00:00-00:00", severity="Minor"),
        "wind-bc.cap": make_cap(identifier="W1", headline="Wind Warning in effect",
                                area_desc="Metro Vancouver", polygons=[VANCOUVER_POLYGON]),
        "fog-expired.cap": make_cap(identifier="F1", headline="Fog Advisory in effect",
                                    expires="2025-01-15T11:00:00-00:00"),
        "broken.cap": b"<alert><info>",
        "bad-encoding.cap": b'<?xml version="1.0" encoding="bogus"?><alert/>',
    }


@pytest.fixture
def transport(fake_transport, documents):
    routes = {f"{ROOT}/20250115/CWUL/12/{name}": (200, body) for name, body in documents.items()}
    return fake_transport(routes)


class TestCoordinateInput:
    """좌표 입력 테스트"""

    def test_mapping(self):
        """딕셔너리 좌표 변환"""
        assert to_coordinate(LEVIS) == Coordinate(latitude=46.8, longitude=-71.1)

    @pytest.mark.parametrize("point", [None, {"latitude": 120, "longitude": 0}, {"latitude": 1}])
    def test_invalid(self, point):
        """없거나 잘못된 좌표는 ValueError"""
        with pytest.raises(ValueError):
            to_coordinate(point)


@pytest.mark.integration
class TestAlertPipeline:
    """파이프라인 전체 흐름 테스트"""

    @pytest.mark.asyncio
    async def test_seeded_cache_returns_current_alert(self, memory_kv, sample_settings, fixed_clock,
                                                      transport, documents):
        """캐시로 찾은 문서에서 현재 경보 하나를 반환"""
        await _seed_cache(memory_kv, sample_settings, documents)
        notifier = QueueNotifier()
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], notifier=notifier,
                                  clock=fixed_clock)

        views = await pipeline.run(LEVIS)

        # 종료 경보는 활성 경보에 밀리고, 만료/타 지역/손상 문서는 제외
        assert [v.id for v in views] == ["T1"]
        view = views[0]
        assert view.severity == Severity.SEVERE
        assert view.link == f"{ROOT}/20250115/CWUL/12/storm-issued.cap"
        assert view.affected_area_names == ["Lévis"]

        events = notifier.drain()
        assert [e.alert_id for e in events] == ["T1"]

    @pytest.mark.asyncio
    async def test_commit_remembers_parsed_paths(self, memory_kv, sample_settings, fixed_clock,
                                                 transport, documents):
        """해석에 성공한 경로만 캐시에 기억"""
        await _seed_cache(memory_kv, sample_settings, documents)
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], clock=fixed_clock)

        await pipeline.run(LEVIS)

        cached = await pipeline.discovery.cache.load()
        assert "20250115/CWUL/12/storm-issued.cap" in cached
        assert "20250115/CWUL/12/wind-bc.cap" in cached
        assert "20250115/CWUL/12/broken.cap" not in cached
        assert "20250115/CWUL/12/bad-encoding.cap" not in cached

    @pytest.mark.asyncio
    async def test_second_run_announces_nothing(self, memory_kv, sample_settings, fixed_clock,
                                                transport, documents):
        """같은 경보는 한 번만 알림"""
        await _seed_cache(memory_kv, sample_settings, documents)
        notifier = QueueNotifier()
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], notifier=notifier,
                                  clock=fixed_clock)

        await pipeline.run(LEVIS)
        notifier.drain()
        views = await pipeline.run(LEVIS)

        assert [v.id for v in views] == ["T1"]
        assert notifier.drain() == []

    @pytest.mark.asyncio
    async def test_other_location(self, memory_kv, sample_settings, fixed_clock, transport, documents):
        """다른 지역 좌표는 그 지역 경보만"""
        await _seed_cache(memory_kv, sample_settings, documents)
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], clock=fixed_clock)

        views = await pipeline.run({"latitude": 49.28, "longitude": -123.12})

        assert [v.id for v in views] == ["W1"]

    @pytest.mark.asyncio
    async def test_expired_kept_when_configured(self, memory_kv, sample_settings, fixed_clock,
                                                transport, documents):
        """만료 제거를 끄면 만료 경보도 포함"""
        sample_settings.conflation.drop_expired = False
        await _seed_cache(memory_kv, sample_settings, documents)
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], clock=fixed_clock)

        views = await pipeline.run(LEVIS)

        assert {v.id for v in views} == {"T1", "F1"}

    @pytest.mark.asyncio
    async def test_nothing_found_returns_empty(self, memory_kv, sample_settings, fixed_clock,
                                               fake_transport):
        """아무것도 찾지 못하면 빈 목록 (예외 없음)"""
        pipeline = build_pipeline(sample_settings, memory_kv, [fake_transport()], clock=fixed_clock)

        assert await pipeline.run(LEVIS) == []

    @pytest.mark.asyncio
    async def test_empty_discovery_keeps_seen_ids(self, memory_kv, sample_settings, fixed_clock,
                                                  transport, documents, fake_transport):
        """후보가 없는 실행 뒤에도 이전 경보는 다시 알리지 않음"""
        await _seed_cache(memory_kv, sample_settings, documents)
        notifier = QueueNotifier()
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], notifier=notifier,
                                  clock=fixed_clock)
        await pipeline.run(LEVIS)
        notifier.drain()

        outage = build_pipeline(sample_settings, memory_kv, [fake_transport()], notifier=notifier,
                                clock=fixed_clock)
        assert await outage.run(LEVIS) == []
        assert await outage.seen_store.load() == {"T1"}

        await pipeline.run(LEVIS)
        assert notifier.drain() == []

    @pytest.mark.asyncio
    async def test_listing_candidates_fetched(self, memory_kv, sample_settings, fixed_clock,
                                              fake_transport, make_listing, make_cap):
        """목록 탐색 후보는 본문을 따로 가져옴"""
        transport = fake_transport({
            f"{ROOT}/20250115/": (200, make_listing("CWUL/")),
            f"{ROOT}/20250115/CWUL/": (200, make_listing("12/")),
            f"{ROOT}/20250115/CWUL/12/": (200, make_listing("a.cap", "missing.cap")),
            f"{ROOT}/20250115/CWUL/12/a.cap": (200, make_cap(identifier="L1")),
        })
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], clock=fixed_clock)

        views = await pipeline.run(LEVIS)

        assert [v.id for v in views] == ["L1"]

    @pytest.mark.asyncio
    async def test_feed_fallback_name_match(self, memory_kv, sample_settings, fixed_clock, fake_transport):
        """요약 피드 항목은 지역명으로 매칭"""
        feed = (b"<rss><channel><item>"
                b"<title>WIND WARNING IN EFFECT, City of Toronto</title>"
                b"<guid>on-1</guid><description>Strong winds.</description>"
                b"</item></channel></rss>")
        transport = fake_transport({"https://weather.gc.ca/rss/battleboard/on_e.xml": (200, feed)})
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], clock=fixed_clock)

        views = await pipeline.run({"latitude": 43.65, "longitude": -79.38})

        assert [v.id for v in views] == ["on-1"]
        # 피드 경로는 캐시에 기억하지 않음
        assert await pipeline.discovery.cache.load() == []

    @pytest.mark.asyncio
    async def test_deadline_discards_partial_work(self, memory_kv, sample_settings, fixed_clock,
                                                  documents):
        """제한 시간을 넘기면 TimeoutError, 공유 상태는 변경 없음"""
        await _seed_cache(memory_kv, sample_settings, documents)
        before = await memory_kv.get(sample_settings.discovery.path_cache_key)
        pipeline = build_pipeline(sample_settings, memory_kv, [HangingTransport()], clock=fixed_clock)

        with pytest.raises(asyncio.TimeoutError):
            await pipeline.run(LEVIS, deadline_sec=0.05)

        assert await memory_kv.get(sample_settings.discovery.path_cache_key) == before
        assert await memory_kv.get(sample_settings.notifications.seen_ids_key) is None

    @pytest.mark.asyncio
    async def test_invalid_coordinate_raises(self, memory_kv, sample_settings, fake_transport):
        """잘못된 좌표는 ValueError"""
        pipeline = build_pipeline(sample_settings, memory_kv, [fake_transport()])

        with pytest.raises(ValueError):
            await pipeline.run(None)

    @pytest.mark.asyncio
    async def test_notifications_disabled(self, memory_kv, sample_settings, fixed_clock,
                                          transport, documents):
        """알림을 끄면 이벤트 없음"""
        sample_settings.notifications.enabled = False
        await _seed_cache(memory_kv, sample_settings, documents)
        notifier = QueueNotifier()
        pipeline = build_pipeline(sample_settings, memory_kv, [transport], notifier=notifier,
                                  clock=fixed_clock)

        await pipeline.run(LEVIS)

        assert notifier.drain() == []


class TestSelectCurrent:
    """병합 단계 테스트"""

    def test_honor_references(self, sample_settings, fixed_clock, make_cap, fake_transport, memory_kv):
        """references 반영 시 대체된 경보 제거"""
        sample_settings.conflation.honor_references = True
        pipeline = build_pipeline(sample_settings, memory_kv, [fake_transport()], clock=fixed_clock)
        old = parse_cap(make_cap(identifier="OLD", headline="Rainfall Warning in effect"), "old.cap")
        new = parse_cap(make_cap(identifier="NEW", headline="Snowfall Warning in effect",
                                 references="s,OLD,2025-01-15T09:00:00-00:00"), "new.cap")

        current = pipeline.select_current(Coordinate(**LEVIS), [old, new])

        assert [a.id for a in current] == ["NEW"]

    def test_default_pipeline_construction(self, sample_settings, fake_transport, memory_kv):
        """기본 지명 사전으로 생성"""
        pipeline = build_pipeline(sample_settings, memory_kv, [fake_transport()])
        assert isinstance(pipeline, AlertPipeline)
        assert pipeline.gazetteer.resolve((-71.1, 46.8)).name == "Lévis"


class TestParseCandidates:
    """후보 해석 단계 테스트"""

    def test_bad_encoding_skipped_batch_continues(self, sample_settings, make_cap, fake_transport, memory_kv):
        """인코딩이 잘못된 문서는 건너뛰고 나머지는 해석"""
        pipeline = build_pipeline(sample_settings, memory_kv, [fake_transport()])
        candidates = [
            Candidate(path="20250115/CWUL/12/bad.cap", url=f"{ROOT}/20250115/CWUL/12/bad.cap", tier="cache",
                      payload=b'<?xml version="1.0" encoding="bogus"?><alert/>'),
            Candidate(path="20250115/CWUL/12/good.cap", url=f"{ROOT}/20250115/CWUL/12/good.cap", tier="cache",
                      payload=make_cap(identifier="G1")),
        ]

        alerts, parsed_paths = pipeline.parse_candidates(candidates)

        assert [a.id for a in alerts] == ["G1"]
        assert parsed_paths == ["20250115/CWUL/12/good.cap"]
