"""
Layered resource discovery for capwatch.

Candidate documents are located tier by tier for each date in a
small window (today, the trailing days, optionally tomorrow):

1. cached paths with the date segment rewritten,
2. probing a fixed {office, hour, suffix} catalogue,
3. a depth-bounded walk of the date/office/hour listings.

The walk stops as soon as the accumulated candidates reach the
configured threshold. When every date comes back empty the
per-region summary feed is tried as a last resort. Expected
absence is never an error, and exhausting every tier returns an
empty result.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from .listing import (
    date_window, join_url, known_pattern_paths, parse_documents,
    parse_hour_directories, parse_subdirectories, rewrite_date,
)
from .path_cache import DiscoveredPathCache
from capwatch.core.gazetteer import LocalityMatch, feed_region_codes, prioritize_offices
from capwatch.orchestrators.fetcher import FetchOrchestrator
from capwatch.settings import DiscoveryConfig, SourceConfig
from capwatch.observability import metrics
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.discovery")

Tier = Literal["cache", "pattern", "listing", "feed"]


class Candidate(BaseModel):
    """후보 문서"""
    path: str
    url: str
    tier: Tier
    kind: Literal["cap", "feed"] = "cap"
    payload: Optional[bytes] = None      # 탐침 중 이미 가져온 본문
    region_code: Optional[str] = None    # 요약 피드 지역 코드


class DiscoveryResult(BaseModel):
    """탐색 결과"""
    candidates: List[Candidate] = Field(default_factory=list)
    tiers: List[str] = Field(default_factory=list)
    dates: List[str] = Field(default_factory=list)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResourceDiscovery:
    """색인 없는 원격 트리에서 후보 문서를 찾는 계층형 탐색기"""

    def __init__(self,
                 fetcher: FetchOrchestrator,
                 cache: DiscoveredPathCache,
                 *,
                 source: Optional[SourceConfig] = None,
                 config: Optional[DiscoveryConfig] = None,
                 clock: Callable[[], datetime] = _utc_now):
        """
        초기화합니다.

        Args:
            fetcher: 문서 가져오기 오케스트레이터
            cache: 성공 경로 캐시
            source: 원격 주소 설정
            config: 탐색 설정
            clock: 현재 UTC 시각 공급자
        """
        self.fetcher = fetcher
        self.cache = cache
        self.source = source or SourceConfig()
        self.config = config or DiscoveryConfig()
        self.clock = clock

    # ---- 주소 ----
    def document_url(self, path: str) -> str:
        return join_url(self.source.base_url, self.source.cap_root, path)

    def listing_url(self, *segments: str) -> str:
        return join_url(self.source.base_url, self.source.cap_root, *segments) + "/"

    def feed_url(self, region_code: str) -> str:
        return join_url(self.source.feed_host, self.source.feed_path.format(region_code=region_code))

    # ---- 공개 API ----
    async def discover(self, locality: Optional[LocalityMatch] = None) -> DiscoveryResult:
        """
        후보 문서를 찾습니다.

        Args:
            locality: 호출자 위치의 지명 조회 결과 (담당 기관/피드 지역 선택에 사용)

        Returns:
            탐색 결과 (모든 계층이 비면 빈 결과)
        """
        semaphore = asyncio.Semaphore(self.config.concurrency)
        region_code = locality.region_code if locality else None
        offices = prioritize_offices(self.config.offices, region_code)
        cached_paths = await self.cache.load()
        days = date_window(self.clock(), self.config.trailing_days, self.config.include_tomorrow)

        found: Dict[str, Candidate] = {}
        result = DiscoveryResult()

        for day in days:
            result.dates.append(day)
            before = len(found)

            tiers = (
                ("cache", lambda d=day: self._from_cache(d, cached_paths, semaphore)),
                ("pattern", lambda d=day: self._from_patterns(d, offices, semaphore)),
                ("listing", lambda d=day: self._from_listing(d, offices, semaphore)),
            )
            for name, run_tier in tiers:
                added = self._collect(found, await run_tier())
                if added:
                    result.tiers.append(name)
                    metrics.candidates_discovered.labels(tier=name).inc(added)
                    log.debug(f"탐색 계층 결과 day:{day} tier:{name} added:{added} total:{len(found)}")
                if len(found) >= self.config.min_candidates:
                    result.candidates = list(found.values())
                    log.info(f"탐색 완료 day:{day} tiers:{result.tiers} candidates:{len(found)}")
                    return result

            if len(found) > before:
                # 주소 지정 가능한 날짜에서 결과를 얻었으면 다른 날짜는 보지 않음
                break

        if not found:
            added = self._collect(found, await self._from_feed(locality, semaphore))
            if added:
                result.tiers.append("feed")
                metrics.candidates_discovered.labels(tier="feed").inc(added)

        result.candidates = list(found.values())
        log.info(f"탐색 완료 dates:{result.dates} tiers:{result.tiers} candidates:{len(found)}")
        return result

    async def remember(self, paths: Iterable[str]) -> List[str]:
        """성공적으로 해석된 문서 경로를 캐시에 병합합니다."""
        return await self.cache.remember(paths)

    # ---- 계층 ----
    @staticmethod
    def _collect(found: Dict[str, Candidate], candidates: Iterable[Candidate]) -> int:
        added = 0
        for candidate in candidates:
            if candidate.path not in found:
                found[candidate.path] = candidate
                added += 1
        return added

    async def _fetch_paths(self, paths: Sequence[str], tier: Tier,
                     semaphore: asyncio.Semaphore) -> List[Candidate]:
        """경로를 직접 가져와 실제로 존재하는 문서만 후보로 만듭니다."""
        if not paths:
            return []
        urls = [self.document_url(p) for p in paths]
        results = await self.fetcher.fetch_many(urls, semaphore)
        return [
            Candidate(path=path, url=res.url, tier=tier, payload=res.payload)
            for path, res in zip(paths, results)
            if res.ok
        ]

    async def _from_cache(self, day: str, cached_paths: Sequence[str],
                          semaphore: asyncio.Semaphore) -> List[Candidate]:
        rewritten = [rewrite_date(p, day) for p in cached_paths]
        paths = list(dict.fromkeys(p for p in rewritten if p))
        return await self._fetch_paths(paths, "cache", semaphore)

    async def _from_patterns(self, day: str, offices: Sequence[str],
                             semaphore: asyncio.Semaphore) -> List[Candidate]:
        paths = known_pattern_paths(
            day, offices, self.config.hour_buckets,
            self.config.document_suffixes, self.config.max_pattern_probes,
        )
        return await self._fetch_paths(paths, "pattern", semaphore)

    async def _fetch_listing(self, url: str, semaphore: asyncio.Semaphore) -> Optional[str]:
        async with semaphore:
            res = await self.fetcher.fetch(url)
        if not res.ok:
            return None
        return res.payload.decode("utf-8", errors="replace")

    async def _from_listing(self, day: str, offices: Sequence[str],
                            semaphore: asyncio.Semaphore) -> List[Candidate]:
        day_url = self.listing_url(day)
        listing = await self._fetch_listing(day_url, semaphore)
        if listing is None:
            return []

        available = parse_subdirectories(listing, day_url)
        ordered = [o for o in offices if o in available]
        ordered += [o for o in available if o not in ordered]
        chosen = ordered[:self.config.max_offices]

        per_office = await asyncio.gather(
            *(self._traverse_office(day, office, semaphore) for office in chosen)
        )
        paths = [p for office_paths in per_office for p in office_paths]
        paths = list(dict.fromkeys(paths))[:self.config.max_documents]
        return [Candidate(path=p, url=self.document_url(p), tier="listing") for p in paths]

    async def _traverse_office(self, day: str, office: str,
                               semaphore: asyncio.Semaphore) -> List[str]:
        office_url = self.listing_url(day, office)
        listing = await self._fetch_listing(office_url, semaphore)
        if listing is None:
            return []
        hours = parse_hour_directories(listing, office_url)[:self.config.max_hours]
        hour_listings = await asyncio.gather(
            *(self._fetch_listing(self.listing_url(day, office, hour), semaphore) for hour in hours)
        )
        paths: List[str] = []
        for hour, text in zip(hours, hour_listings):
            if text:
                paths.extend(f"{day}/{office}/{hour}/{name}" for name in parse_documents(text))
        return paths

    async def _from_feed(self, locality: Optional[LocalityMatch],
                         semaphore: asyncio.Semaphore) -> List[Candidate]:
        codes = feed_region_codes(locality)
        urls = [self.feed_url(code) for code in codes]
        results = await self.fetcher.fetch_many(urls, semaphore)

        candidates = []
        for code, res in zip(codes, results):
            if res.ok:
                log.info(f"요약 피드로 대체 region:{code}")
                candidates.append(Candidate(path=f"feed/{code}", url=res.url, tier="feed", kind="feed",
                                            payload=res.payload, region_code=code))
        return candidates
