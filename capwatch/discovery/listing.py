"""
Remote tree addressing and directory-listing parsing for capwatch.

Documents live under {base}/{root}/{YYYYMMDD}/{OFFICE}/{HH}/{name}.
The helpers here are pure: they build paths, rewrite date segments
and extract folder and document names from HTML listings.
"""

import re
from datetime import datetime, timedelta
from itertools import product
from typing import List, Optional, Sequence
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

_DATE_SEGMENT_RE = re.compile(r"^\d{8}$")
_HOUR_RE = re.compile(r"^\d{2}$")


def date_segment(day: datetime) -> str:
    return day.strftime("%Y%m%d")


def date_window(now: datetime, trailing_days: int = 1, include_tomorrow: bool = True) -> List[str]:
    """
    탐색할 날짜 폴더 목록 (오늘, 과거 순, 선택적으로 내일)

    Args:
        now: 기준 시각 (UTC)
        trailing_days: 오늘 이전으로 포함할 일수
        include_tomorrow: 시간대 차이를 흡수하기 위해 내일 포함 여부

    Returns:
        YYYYMMDD 문자열 목록
    """
    dates = [date_segment(now - timedelta(days=offset)) for offset in range(trailing_days + 1)]
    if include_tomorrow:
        dates.append(date_segment(now + timedelta(days=1)))
    return dates


def rewrite_date(path: str, day: str) -> Optional[str]:
    """
    경로의 선두 날짜 구획을 바꿉니다.

    Args:
        path: "YYYYMMDD/OFFICE/HH/name.cap" 형태의 상대 경로
        day: 새 날짜 (YYYYMMDD)

    Returns:
        바뀐 경로, 날짜 구획이 없으면 None
    """
    head, sep, rest = path.strip("/").partition("/")
    if not sep or not _DATE_SEGMENT_RE.match(head):
        return None
    return f"{day}/{rest}"


def known_pattern_paths(day: str,
                        offices: Sequence[str],
                        hours: Sequence[str],
                        suffixes: Sequence[str],
                        limit: int) -> List[str]:
    """
    {기관, 시간 구간, 문서 접미어} 조합을 전체 경로로 확장합니다.

    앞쪽 기관이 먼저 나오므로 우선순위 기관이 먼저 시도됩니다.
    """
    paths = [f"{day}/{office}/{hour}/{suffix}"
             for office, hour, suffix in product(offices, hours, suffixes)]
    return paths[:limit]


def listing_links(listing: Optional[str]) -> List[str]:
    """목록 HTML 의 모든 a 태그 href 를 순서대로 반환합니다."""
    if not listing:
        return []
    soup = BeautifulSoup(listing, "html.parser")
    return [a["href"].strip() for a in soup.find_all("a", href=True) if a["href"].strip()]


def parse_subdirectories(listing: Optional[str], base_url: Optional[str] = None) -> List[str]:
    """
    목록 HTML 에서 바로 아래 하위 폴더 이름을 추출합니다.

    상대/절대 href 를 목록 주소 기준으로 해석하여, 목록 경로의 직계 자식
    폴더만 남깁니다 (상위 폴더, 정렬 링크 제외).

    Args:
        listing: 목록 HTML
        base_url: 목록 자체의 URL (없으면 루트 기준)

    Returns:
        폴더 이름 목록 (등장 순서)
    """
    base_path = urlsplit(base_url).path if base_url else "/"
    if not base_path.endswith("/"):
        base_path += "/"

    names = []
    for href in listing_links(listing):
        if href.startswith(("?", "#")):
            continue
        path = urlsplit(urljoin(base_path, href)).path
        if not path.endswith("/") or not path.startswith(base_path):
            continue
        name = path[len(base_path):].strip("/")
        if not name or "/" in name or name.startswith("."):
            continue
        names.append(name)
    return list(dict.fromkeys(names))


def parse_hour_directories(listing: Optional[str], base_url: Optional[str] = None) -> List[str]:
    """목록 HTML 에서 시간 폴더(HH)를 최신 순으로 추출합니다."""
    hours = {name for name in parse_subdirectories(listing, base_url) if _HOUR_RE.match(name)}
    return sorted(hours, reverse=True)


def parse_documents(listing: Optional[str]) -> List[str]:
    """목록 HTML 에서 .cap 문서 이름을 추출합니다."""
    names = []
    for href in listing_links(listing):
        path = urlsplit(href).path
        if path.lower().endswith(".cap"):
            names.append(path.rsplit("/", 1)[-1])
    return list(dict.fromkeys(n for n in names if n))


def join_url(*parts: str) -> str:
    """URL 구획을 슬래시 하나로 연결합니다."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    return "/".join(cleaned)
