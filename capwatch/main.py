# capwatch/main.py
import os, asyncio, signal
from typing import Optional
import uvicorn
from capwatch.settings import Settings
from capwatch.observability.health import create_app
from capwatch.observability.logging_setup import setup_logging_dev, setup_logging_json, get_logger
from capwatch.adapters.storage.sqlite_kv import SQLiteKVStore
from capwatch.adapters.http.client import CapHttpClient
from capwatch.adapters.notifier import QueueNotifier
from capwatch.orchestrators.pipeline import AlertPipeline, build_pipeline

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def _opt_float(name, default):
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default

def build_settings() -> Settings:
    s = Settings()

    # 원격 소스
    s.source.base_url = os.getenv("CAPWATCH_BASE_URL", s.source.base_url)
    s.source.feed_host = os.getenv("CAPWATCH_FEED_HOST", s.source.feed_host)
    s.source.preferred_language = os.getenv("CAPWATCH_LANGUAGE", s.source.preferred_language)

    # 탐색
    s.discovery.min_candidates = int(os.getenv("CAPWATCH_MIN_CANDIDATES", s.discovery.min_candidates))
    s.discovery.concurrency = int(os.getenv("CAPWATCH_CONCURRENCY", s.discovery.concurrency))
    s.discovery.trailing_days = int(os.getenv("CAPWATCH_TRAILING_DAYS", s.discovery.trailing_days))
    s.discovery.include_tomorrow = _b("CAPWATCH_INCLUDE_TOMORROW", s.discovery.include_tomorrow)

    # 가져오기
    s.fetch.timeout_sec = float(os.getenv("CAPWATCH_FETCH_TIMEOUT_SEC", s.fetch.timeout_sec))
    s.fetch.retries_per_transport = int(os.getenv("CAPWATCH_FETCH_RETRIES", s.fetch.retries_per_transport))
    s.fetch.use_direct = _b("CAPWATCH_USE_DIRECT", s.fetch.use_direct)

    # 매칭/병합
    s.matching.buffer_km = float(os.getenv("CAPWATCH_BUFFER_KM", s.matching.buffer_km))
    s.conflation.honor_references = _b("CAPWATCH_HONOR_REFERENCES", s.conflation.honor_references)
    s.conflation.drop_expired = _b("CAPWATCH_DROP_EXPIRED", s.conflation.drop_expired)

    # 알림/저장소
    s.notifications.enabled = _b("CAPWATCH_NOTIFY", s.notifications.enabled)
    s.storage.kv_path = os.getenv("CAPWATCH_KV_PATH", s.storage.kv_path)

    # 주기 실행
    s.scheduler.interval_sec = int(os.getenv("CAPWATCH_INTERVAL_SEC", s.scheduler.interval_sec))
    s.scheduler.latitude = _opt_float("CAPWATCH_LATITUDE", s.scheduler.latitude)
    s.scheduler.longitude = _opt_float("CAPWATCH_LONGITUDE", s.scheduler.longitude)
    s.scheduler.deadline_sec = _opt_float("CAPWATCH_DEADLINE_SEC", s.scheduler.deadline_sec)

    # 관측성
    s.observability.metrics_enabled = _b("CAPWATCH_METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_port = int(os.getenv("CAPWATCH_HTTP_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)

    # 할당은 검증되지 않으므로 한 번 더 검증
    return Settings.model_validate(s.model_dump())

async def start_http(settings: Settings, pipeline: Optional[AlertPipeline] = None) -> Optional[asyncio.Task]:
    if not settings.observability.metrics_enabled: return None
    app = create_app(settings, pipeline)
    return asyncio.create_task(uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=settings.observability.http_port, log_level="info")
    ).serve())

async def periodic_check(pipeline: AlertPipeline, settings: Settings, notifier: QueueNotifier) -> None:
    log = get_logger("capwatch.scheduler")
    point = {"latitude": settings.scheduler.latitude, "longitude": settings.scheduler.longitude}
    while True:
        try:
            views = await pipeline.run(point, deadline_sec=settings.scheduler.deadline_sec)
            log.info(f"주기 점검 완료 alerts:{len(views)}")
        except asyncio.TimeoutError:
            log.warning("주기 점검 제한 시간 초과, 다음 주기에 재시도")
        for event in notifier.drain():
            log.warning(f"새 경보 [{event.severity.value}] {event.title} - {event.body} ({event.link})")
        await asyncio.sleep(settings.scheduler.interval_sec)

async def main():
    # 로거 초기화 (환경변수 LOG_LEVEL 우선, 없으면 설정 사용)
    initial_level = os.getenv("LOG_LEVEL", "INFO")
    if _b("CAPWATCH_JSON_LOGS", False):
        setup_logging_json(initial_level)
    else:
        setup_logging_dev(initial_level)
    log = get_logger()

    s = build_settings()
    log.info("설정 로드 완료")

    kv = SQLiteKVStore(s.storage.kv_path); await kv.init()
    notifier = QueueNotifier(s.notifications.queue_maxsize)

    async with CapHttpClient(s.fetch) as http:
        pipeline = build_pipeline(s, kv, http.transports(), notifier=notifier)
        log.info("파이프라인 생성 완료")

        http_task = await start_http(s, pipeline)
        if http_task:
            log.info("HTTP 서버 시작됨")

        check_task = None
        if s.scheduler.latitude is not None and s.scheduler.longitude is not None:
            check_task = asyncio.create_task(periodic_check(pipeline, s, notifier))
            log.info(f"주기 점검 시작 interval:{s.scheduler.interval_sec}s")
        else:
            log.info("홈 좌표 미설정, 주기 점검 없이 HTTP 조회만 제공")

        stop = asyncio.Future()
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
                except NotImplementedError: pass
        except RuntimeError: pass

        await stop
        log.info("종료 신호 수신")
        if check_task: check_task.cancel()
        if http_task: http_task.cancel()
        await asyncio.gather(*(t for t in (check_task, http_task) if t), return_exceptions=True)

    await kv.gc()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
