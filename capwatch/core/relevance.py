"""
Geographic relevance evaluation for capwatch.

This module decides whether an alert affects a coordinate. Each
area is tested with exact polygon containment, then a buffered
polygon (or an expanded bounding box when the ring is degenerate),
then a circle-plus-buffer distance test, and finally a gazetteer
name match against the area's free-text description.
"""

from typing import Optional, Tuple, Union

from .gazetteer import LocalityMatch, RegionGazetteer, match_area_description
from .models import Alert, Area, Coordinate, RelevanceDecision
from capwatch.common.geo import (
    GeometryError,
    buffered_polygon_contains,
    calculate_bounding_box,
    close_ring,
    expand_bounding_box,
    haversine_distance,
    point_in_bounding_box,
    point_in_polygon,
    validate_coordinates,
)
from capwatch.observability.logging_setup import get_logger

log = get_logger("capwatch.relevance")

DEFAULT_BUFFER_KM = 30.0

PointLike = Union[Coordinate, Tuple[float, float]]


def _as_lonlat(point: Optional[PointLike]) -> Tuple[float, float]:
    """Coordinate 또는 (경도, 위도) 튜플을 검증된 (경도, 위도)로 변환합니다."""
    if point is None:
        raise ValueError("좌표가 필요합니다")
    if isinstance(point, Coordinate):
        lon, lat = point.as_lonlat()
    else:
        lon, lat = point
    if not validate_coordinates(lat, lon):
        raise ValueError(f"유효하지 않은 좌표: lat={lat}, lon={lon}")
    return (lon, lat)


def _evaluate_geometry(point: Tuple[float, float],
                       area: Area,
                       buffer_km: float) -> Optional[RelevanceDecision]:
    """도형 기반 단계(폴리곤, 버퍼, 경계 상자, 원)를 평가합니다."""
    name = area.description or None

    if area.polygon:
        ring = close_ring(area.polygon)
        if point_in_polygon(point, ring):
            return RelevanceDecision(affected=True, reason="point_in_polygon",
                                     tier="polygon", area=name)
        try:
            if buffered_polygon_contains(point, ring, buffer_km):
                return RelevanceDecision(affected=True,
                                         reason=f"within_polygon_buffer({buffer_km}km)",
                                         tier="polygon_buffer", area=name)
        except GeometryError as e:
            # 퇴화 도형은 확장된 경계 상자로 대체
            log.debug(f"폴리곤 버퍼 실패, 경계 상자로 대체 area:{name} error:{e}")
            bbox = expand_bounding_box(calculate_bounding_box(ring), buffer_km)
            if point_in_bounding_box(point, bbox):
                return RelevanceDecision(affected=True,
                                         reason=f"within_expanded_bbox({buffer_km}km)",
                                         tier="bounding_box", area=name)

    if area.circle is not None:
        c_lon, c_lat = area.circle.center
        lon, lat = point
        distance = haversine_distance(lat, lon, c_lat, c_lon)
        limit = area.circle.radius_km + buffer_km
        if distance <= limit:
            return RelevanceDecision(affected=True,
                                     reason=f"distance({distance:.2f}km) <= radius+buffer({limit}km)",
                                     tier="circle", area=name)

    return None


def evaluate_relevance(point: PointLike,
                       alert: Alert,
                       *,
                       buffer_km: float = DEFAULT_BUFFER_KM,
                       gazetteer: Optional[RegionGazetteer] = None,
                       locality: Optional[LocalityMatch] = None) -> RelevanceDecision:
    """
    경보가 좌표에 영향을 주는지 평가합니다.

    Args:
        point: 호출자 좌표 (Coordinate 또는 (경도, 위도))
        alert: 평가할 경보
        buffer_km: 폴리곤/원 버퍼 거리 (킬로미터)
        gazetteer: 이름 기반 폴백에 사용할 지명 사전
        locality: 미리 조회한 지명 (없으면 gazetteer 로 조회)

    Returns:
        평가 결과

    Raises:
        ValueError: 좌표가 없거나 범위를 벗어난 경우
    """
    lonlat = _as_lonlat(point)

    for area in alert.areas:
        decision = _evaluate_geometry(lonlat, area, buffer_km)
        if decision is not None:
            return decision

    if locality is None and gazetteer is not None:
        locality = gazetteer.resolve(lonlat)

    if locality is not None:
        for area in alert.areas:
            matched = match_area_description(area.description, locality)
            if matched:
                return RelevanceDecision(affected=True,
                                         reason=f"name_match({matched})",
                                         tier="name", area=area.description)

    return RelevanceDecision(affected=False, reason="no_geographic_match", tier="none")


def is_affected(point: PointLike,
                alert: Alert,
                *,
                buffer_km: float = DEFAULT_BUFFER_KM,
                gazetteer: Optional[RegionGazetteer] = None,
                locality: Optional[LocalityMatch] = None) -> bool:
    """경보가 좌표에 영향을 주면 True 를 반환합니다."""
    return evaluate_relevance(point, alert, buffer_km=buffer_km,
                              gazetteer=gazetteer, locality=locality).affected
