"""
Display formatting for capwatch.

This module turns conflated alerts into HTML-safe display records
and new-alert notification events, and splits Environment Canada
style descriptions into their What/When/Where sections.
"""

import html
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .models import (
    Alert, AlertEvent, AlertView, DescriptionSections, Severity, SEVERITY_RANK,
)

# 심각도 → 표시 유형
ALERT_TYPES = {
    Severity.EXTREME: "extreme",
    Severity.SEVERE: "severe",
    Severity.MODERATE: "moderate",
}

# 본문 구획 머리글 (소문자 접두어 → 필드명)
_SECTION_HEADERS = (
    ("what:", "what"),
    ("when:", "when"),
    ("where:", "where"),
    ("remarks:", "remarks"),
    ("in effect for:", "in_effect_for"),
)

# 안내문/연락처 꼬리말
_BOILERPLATE_PREFIXES = ("please continue to monitor", "for more information", "to report severe weather")
_BOILERPLATE_FRAGMENTS = ("colour-coded weather alerts", "color-coded weather alerts", "@ec.gc.ca", "#onstorm")

_SPACES_RE = re.compile(r"[ \t\r\f\v]{2,}")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def format_description(text: Optional[str]) -> str:
    """
    본문을 HTML 안전 문자열로 변환합니다.

    HTML 특수문자를 이스케이프하고, 줄바꿈은 <br> 로, 연속 공백은 하나로 줄입니다.
    """
    if not text:
        return ""
    escaped = html.escape(text.strip(), quote=True)
    escaped = escaped.replace("\r\n", "\n")
    escaped = _SPACES_RE.sub(" ", escaped)
    return escaped.replace("\n", "<br>")


def alert_type_for(severity: Severity) -> str:
    return ALERT_TYPES.get(severity, "info")


def parse_description_sections(description: Optional[str]) -> Optional[DescriptionSections]:
    """
    EC 형식 본문("What: ...", "When: ..." 등)을 구획별로 나눕니다.

    Args:
        description: 경보 본문

    Returns:
        구획 정보, 구획 머리글이 하나도 없으면 None
    """
    if not description:
        return None

    buckets: Dict[str, List[str]] = {"summary": [], "what": [], "when": [], "where": [], "remarks": [],
                                    "in_effect_for": []}
    current = "summary"
    saw_header = False

    for raw_line in description.splitlines():
        line = raw_line.strip()
        if not line or line == "###":
            continue
        lowered = line.lower()
        if lowered.startswith(_BOILERPLATE_PREFIXES) or any(f in lowered for f in _BOILERPLATE_FRAGMENTS):
            continue

        for prefix, field in _SECTION_HEADERS:
            if lowered.startswith(prefix):
                current = field
                saw_header = True
                line = line[len(prefix):].strip()
                break

        if line:
            buckets[current].append(line)

    if not saw_header:
        return None

    def _joined(field: str) -> Optional[str]:
        return "\n".join(buckets[field]) or None

    return DescriptionSections(
        summary=_joined("summary"),
        what=_joined("what"),
        when=_joined("when"),
        where=_joined("where"),
        remarks=_joined("remarks"),
        in_effect_for=_joined("in_effect_for"),
    )


def format_alert(alert: Alert) -> AlertView:
    """
    경보를 표시용 레코드로 변환합니다.

    Args:
        alert: 병합된 경보

    Returns:
        AlertView
    """
    area_names = [a.description for a in alert.areas if a.description]
    return AlertView(
        id=alert.id,
        title=alert.title,
        formatted_description=format_description(alert.description),
        severity=alert.severity,
        urgency=alert.urgency,
        certainty=alert.certainty,
        effective=alert.effective,
        expires=alert.expires,
        link=alert.source_path,
        affected_area_names=list(dict.fromkeys(area_names)),
        alert_type=alert_type_for(alert.severity),
        instruction=alert.instruction,
        sections=parse_description_sections(alert.description),
    )


def sort_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    """심각도 내림차순, 같은 심각도는 최신 순으로 정렬합니다."""
    def _key(alert: Alert):
        stamp = alert.timestamp or _EPOCH
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return (SEVERITY_RANK[alert.severity], stamp)
    return sorted(alerts, key=_key, reverse=True)


def build_event(alert: Alert, body_length: int = 100) -> AlertEvent:
    """
    새 경보 알림 이벤트를 생성합니다.

    Args:
        alert: 새로 발견된 경보
        body_length: 본문 요약 최대 길이

    Returns:
        AlertEvent
    """
    summary = " ".join(alert.description.split())
    if len(summary) > body_length:
        summary = summary[:body_length].rstrip() + "..."
    return AlertEvent(
        alert_id=alert.id,
        title=alert.title,
        body=summary or alert.title,
        link=alert.source_path,
        severity=alert.severity,
    )
