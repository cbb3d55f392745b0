"""
CAP document parser for capwatch.

This module converts a single CAP 1.2 alert document into an
Alert record. Parsing is pure: the only failure signal is
AlertParseError for documents that cannot be interpreted at all;
individual bad fields degrade to safe defaults.
"""

import hashlib
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

from dateutil import parser as date_parser

from .models import (
    Alert, AlertParseError, Area, Certainty, Circle, Severity, Urgency,
)
from capwatch.common.geo import close_ring
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.parser")

DEFAULT_HEADLINE = "Weather Alert"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    시각 문자열을 timezone-aware datetime 으로 변환합니다.

    Args:
        value: ISO 8601 또는 RFC 822 형식 문자열

    Returns:
        변환된 시각, 해석할 수 없으면 None
    """
    if not value or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError) as e:
        log.debug(f"시각 해석 실패 value:{value!r} error:{e}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_polygon(text: Optional[str]) -> Optional[List[Tuple[float, float]]]:
    """
    CAP 폴리곤 문자열("lat,lon lat,lon ...")을 (경도, 위도) 닫힌 링으로 변환합니다.

    Args:
        text: polygon 요소 텍스트

    Returns:
        (경도, 위도) 링, 해석할 수 없으면 None
    """
    if not text or not text.strip():
        return None

    ring: List[Tuple[float, float]] = []
    for pair in text.split():
        parts = pair.split(",")
        if len(parts) != 2:
            return None
        try:
            lat, lon = float(parts[0]), float(parts[1])
        except ValueError:
            return None
        # 원본은 위도,경도 순서이므로 축을 바꿔 저장
        ring.append((lon, lat))

    return close_ring(ring) if ring else None


def parse_circle(text: Optional[str]) -> Optional[Circle]:
    """
    CAP 원 문자열("lat,lon radius")을 Circle 로 변환합니다.

    Args:
        text: circle 요소 텍스트

    Returns:
        Circle, 해석할 수 없으면 None
    """
    if not text or not text.strip():
        return None
    parts = text.split()
    if len(parts) != 2:
        return None
    center = parts[0].split(",")
    if len(center) != 2:
        return None
    try:
        lat, lon = float(center[0]), float(center[1])
        radius = float(parts[1])
    except ValueError:
        return None
    if radius < 0:
        return None
    return Circle(center=(lon, lat), radius_km=radius)


def parse_references(text: Optional[str]) -> List[str]:
    """
    references 값("sender,identifier,sent ...")에서 식별자 목록을 추출합니다.
    """
    if not text:
        return []
    identifiers = []
    for triple in text.split():
        parts = triple.split(",")
        if len(parts) >= 2 and parts[1]:
            identifiers.append(parts[1])
    return identifiers


def fallback_identifier(source_path: str, headline: str) -> str:
    """식별자가 없는 문서의 결정적 대체 식별자를 생성합니다."""
    digest = hashlib.sha256(f"{source_path}|{headline}".encode("utf-8")).hexdigest()
    return f"alert-{digest[:16]}"


def _text(element: ET.Element, tag: str) -> Optional[str]:
    value = element.findtext(f"{{*}}{tag}")
    if value is None:
        return None
    value = value.strip()
    return value or None


def _select_info(infos: List[ET.Element], preferred_language: Optional[str]) -> ET.Element:
    """선호 언어의 info 블록을 고르고, 없으면 첫 번째 블록을 사용합니다."""
    if preferred_language:
        wanted = preferred_language.lower()
        for info in infos:
            language = (_text(info, "language") or "").lower()
            if language == wanted:
                return info
    return infos[0]


def _parse_areas(info: ET.Element) -> List[Area]:
    areas: List[Area] = []
    for area_el in info.findall("{*}area"):
        description = _text(area_el, "areaDesc") or ""
        polygons = [parse_polygon(p.text) for p in area_el.findall("{*}polygon")]
        polygons = [p for p in polygons if p is not None]
        circles = [parse_circle(c.text) for c in area_el.findall("{*}circle")]
        circles = [c for c in circles if c is not None]

        # 첫 도형은 기본 영역에, 나머지 도형은 같은 설명의 추가 영역으로 분리
        areas.append(Area(
            description=description,
            polygon=polygons[0] if polygons else None,
            circle=circles[0] if circles else None,
        ))
        for extra in polygons[1:]:
            areas.append(Area(description=description, polygon=extra))
        for extra in circles[1:]:
            areas.append(Area(description=description, circle=extra))
    return areas


def parse_cap(raw: Union[bytes, str],
              source_path: str,
              *,
              preferred_language: Optional[str] = "en-CA") -> Alert:
    """
    CAP 문서를 Alert 로 변환합니다.

    Args:
        raw: 문서 원문
        source_path: 문서 경로 또는 URL
        preferred_language: 우선 사용할 info 언어

    Returns:
        Alert 레코드

    Raises:
        AlertParseError: XML 이 손상되었거나 alert/info 요소가 없는 경우
    """
    try:
        root = ET.fromstring(raw)
    except (ET.ParseError, LookupError, ValueError) as e:
        # 알 수 없는 인코딩 선언은 LookupError/ValueError 로 올라옴
        raise AlertParseError(source_path, f"XML 파싱 실패: {type(e).__name__} {e}") from e

    if not root.tag.endswith("alert"):
        raise AlertParseError(source_path, f"alert 루트 요소 아님: {root.tag}")

    infos = root.findall("{*}info")
    if not infos:
        raise AlertParseError(source_path, "info 요소 없음")
    info = _select_info(infos, preferred_language)

    headline = _text(info, "headline") or DEFAULT_HEADLINE
    identifier = _text(root, "identifier") or fallback_identifier(source_path, headline)

    parameters = {}
    for param in info.findall("{*}parameter"):
        name = _text(param, "valueName")
        if name:
            parameters[name] = _text(param, "value") or ""

    alert = Alert(
        id=identifier,
        title=headline,
        description=_text(info, "description") or "",
        instruction=_text(info, "instruction"),
        severity=Severity.parse(_text(info, "severity")),
        urgency=Urgency.parse(_text(info, "urgency")),
        certainty=Certainty.parse(_text(info, "certainty")),
        effective=parse_timestamp(_text(info, "effective")),
        expires=parse_timestamp(_text(info, "expires")),
        sent=parse_timestamp(_text(root, "sent")),
        areas=_parse_areas(info),
        source_path=source_path,
        event=_text(info, "event"),
        msg_type=_text(root, "msgType") or "Alert",
        references=parse_references(_text(root, "references")),
        language=_text(info, "language"),
        web=_text(info, "web"),
        parameters=parameters,
    )

    log.debug(f"CAP 문서 파싱 완료 id:{alert.id} areas:{len(alert.areas)} path:{source_path}")
    return alert
