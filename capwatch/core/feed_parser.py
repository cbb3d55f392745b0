"""
Secondary summary feed parser for capwatch.

This module converts the per-region warnings summary feed (RSS 2.0
items or Atom entries) into Alert records. It is only consulted
when the CAP document tree yields nothing.
"""

import hashlib
import io
import re
from typing import List, Optional, Union

import feedparser

from .cap_parser import parse_timestamp
from .models import Alert, AlertParseError, Area, Certainty, Severity, Urgency
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.feed")

# 경보 없음 안내 항목
_NO_ALERT_PREFIXES = ("no watches or warnings", "aucune veille ou alerte")
_ENDED_RE = re.compile(r"\bended\b")


def severity_from_title(title: str) -> Severity:
    """제목의 경보 종류로 심각도를 추정합니다."""
    lowered = title.lower()
    if "warning" in lowered:
        return Severity.SEVERE
    if "watch" in lowered:
        return Severity.MODERATE
    if "statement" in lowered or "advisory" in lowered:
        return Severity.MINOR
    return Severity.UNKNOWN


def urgency_from_title(title: str) -> Urgency:
    """제목의 경보 종류로 긴급도를 추정합니다."""
    lowered = title.lower()
    if "warning" in lowered:
        return Urgency.IMMEDIATE
    if "watch" in lowered:
        return Urgency.EXPECTED
    if "statement" in lowered:
        return Urgency.FUTURE
    if "advisory" in lowered:
        return Urgency.EXPECTED
    if _ENDED_RE.search(lowered):
        return Urgency.PAST
    return Urgency.UNKNOWN


def area_from_title(title: str) -> str:
    """'SNOWFALL WARNING IN EFFECT, Montréal' 형태 제목에서 지역명을 추출합니다."""
    if "," in title:
        return title.rsplit(",", 1)[1].strip()
    return ""


def _entry_description(entry) -> Optional[str]:
    description = entry.get("summary") or entry.get("description")
    if not description and entry.get("content"):
        description = entry["content"][0].get("value")
    return description.strip() if description and description.strip() else None


def _entry_link(entry) -> Optional[str]:
    # guid 만 있는 RSS 항목은 feedparser 가 guid 를 link 로 복사함
    link = (entry.get("link") or "").strip()
    return link if link.startswith("http") else None


def parse_feed(raw: Union[bytes, str], source_url: str, region_code: str) -> List[Alert]:
    """
    요약 피드를 Alert 목록으로 변환합니다.

    Args:
        raw: 피드 원문
        source_url: 피드 URL
        region_code: 지역 코드 (예: "qc")

    Returns:
        Alert 목록 (제목이나 본문이 없는 항목은 건너뜀)

    Raises:
        AlertParseError: 피드를 해석할 수 없고 항목도 없는 경우
    """
    data = raw.encode("utf-8") if isinstance(raw, str) else raw
    # 파일 경로/URL 로 해석되지 않도록 스트림으로 전달
    parsed = feedparser.parse(io.BytesIO(data))
    if parsed.bozo and not parsed.entries:
        reason = parsed.get("bozo_exception")
        raise AlertParseError(source_url, f"피드 파싱 실패: {type(reason).__name__} {reason}")
    if parsed.bozo:
        log.debug(f"피드 경고 무시 region:{region_code} reason:{parsed.get('bozo_exception')}")

    alerts: List[Alert] = []
    for index, entry in enumerate(parsed.entries):
        title = (entry.get("title") or "").strip()
        description = _entry_description(entry)
        if not title or not description:
            continue
        if title.lower().startswith(_NO_ALERT_PREFIXES):
            continue

        link = _entry_link(entry)
        guid = (entry.get("id") or "").strip()
        if not guid:
            digest = hashlib.sha256(f"{title}|{index}".encode("utf-8")).hexdigest()
            guid = f"{region_code}-{digest[:12]}"

        alerts.append(Alert(
            id=guid,
            title=title,
            description=description,
            severity=severity_from_title(title),
            urgency=urgency_from_title(title),
            certainty=Certainty.OBSERVED,
            sent=parse_timestamp(entry.get("published") or entry.get("updated")),
            areas=[Area(description=area_from_title(title))],
            source_path=link or source_url,
            web=link,
        ))

    log.debug(f"요약 피드 파싱 완료 region:{region_code} entries:{len(parsed.entries)} alerts:{len(alerts)}")
    return alerts
