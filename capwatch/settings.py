# capwatch/settings.py
from __future__ import annotations
from typing import Dict, List
from pydantic import BaseModel, Field

class SourceConfig(BaseModel):
    base_url: str = "https://dd.weather.gc.ca"
    cap_root: str = "alerts/cap"
    feed_host: str = "https://weather.gc.ca"
    feed_path: str = "rss/battleboard/{region_code}_e.xml"
    preferred_language: str = "en-CA"

class DiscoveryConfig(BaseModel):
    min_candidates: int = Field(default=10, ge=1)
    concurrency: int = Field(default=4, ge=3, le=5)
    offices: List[str] = Field(default_factory=lambda: [
        "CWUL", "CWAO", "CWTO", "CWEG", "CWNT", "CWWG", "CWVR", "CYQX", "CWIS", "CWHX",
    ])
    hour_buckets: List[str] = Field(default_factory=lambda: ["00", "06", "12", "18"])
    document_suffixes: List[str] = Field(default_factory=lambda: [
        "LAND-WXO-LAND_WX-WA-12.0.1.0.1.0.cap",
        "LAND-WXO-LAND_WX-WW-12.0.1.0.1.0.cap",
        "LAND-WXO-LAND_WX-FW-12.0.1.0.1.0.cap",
    ])
    max_pattern_probes: int = Field(default=48, ge=0)
    max_offices: int = Field(default=5, ge=1)          # 한 번 실행에서 탐색할 발령 기관 수
    max_hours: int = Field(default=3, ge=1)            # 기관별 탐색할 시간 폴더 수
    max_documents: int = Field(default=30, ge=1)
    trailing_days: int = Field(default=1, ge=0)
    include_tomorrow: bool = True
    path_cache_size: int = Field(default=10, ge=1)
    path_cache_key: str = "capwatch.discovered_paths"

class ProxyConfig(BaseModel):
    name: str
    prefix: str
    encode: bool = True
    headers: Dict[str, str] = Field(default_factory=dict)

def _default_proxies() -> List[ProxyConfig]:
    return [
        ProxyConfig(name="allorigins", prefix="https://api.allorigins.win/raw?url="),
        ProxyConfig(name="corsproxy", prefix="https://corsproxy.io/?"),
        ProxyConfig(
            name="cors-anywhere",
            prefix="https://cors-anywhere.herokuapp.com/",
            encode=False,
            headers={"X-Requested-With": "XMLHttpRequest", "Origin": "https://weather.gc.ca"},
        ),
    ]

class FetchConfig(BaseModel):
    timeout_sec: float = Field(default=5.0, gt=0)
    retries_per_transport: int = Field(default=1, ge=0, le=3)
    retry_backoff_sec: float = Field(default=0.5, ge=0)
    use_direct: bool = True
    proxies: List[ProxyConfig] = Field(default_factory=_default_proxies)
    user_agent: str = "capwatch/0.3.0"

class MatchingConfig(BaseModel):
    buffer_km: float = Field(default=30.0, ge=0)
    gazetteer_max_distance_km: float = Field(default=75.0, ge=0)

class ConflationConfig(BaseModel):
    honor_references: bool = False    # references 기반 대체/취소 반영 여부
    drop_expired: bool = True

class NotificationConfig(BaseModel):
    enabled: bool = True
    seen_ids_key: str = "capwatch.seen_alert_ids"
    queue_maxsize: int = Field(default=100, ge=1)

class StorageConfig(BaseModel):
    kv_path: str = "/data/capwatch.db"

class SchedulerConfig(BaseModel):
    interval_sec: int = Field(default=900, ge=1)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    deadline_sec: float | None = 60.0

class Observability(BaseModel):
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "capwatch"
    build_version: str = "0.3.0"
    build_date: str = "2026-10-01"
    log_level: str = "INFO"

class Settings(BaseModel):
    # 하위 섹션 (기본값/팩토리로 누락 방지)
    source: SourceConfig = Field(default_factory=SourceConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    conflation: ConflationConfig = Field(default_factory=ConflationConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    observability: Observability = Field(default_factory=Observability)
