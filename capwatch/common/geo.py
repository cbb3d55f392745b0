"""
Geographic utilities for capwatch.

This module provides geographic calculations including
great-circle distance, point-in-polygon testing, bounding
boxes and buffered polygon containment.
"""

import math
from typing import List, Tuple, Sequence

from shapely.errors import GEOSException
from shapely.geometry import Point, Polygon

# 지구 반지름 (킬로미터)
EARTH_RADIUS_KM = 6371.0
# 위도 1도당 거리 (킬로미터)
KM_PER_DEGREE = 111.32

LonLat = Tuple[float, float]
BoundingBox = Tuple[float, float, float, float]


class GeometryError(ValueError):
    """버퍼링할 수 없는 퇴화(degenerate) 도형"""


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (킬로미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (킬로미터)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # 대척점 부근의 부동소수 오차로 1을 넘지 않도록 제한
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return c * EARTH_RADIUS_KM


def close_ring(ring: Sequence[LonLat]) -> List[LonLat]:
    """
    링의 첫 점과 마지막 점이 다르면 첫 점을 덧붙여 닫습니다.

    Args:
        ring: 꼭짓점 목록 [(경도, 위도), ...]

    Returns:
        닫힌 링
    """
    points = [(float(lon), float(lat)) for lon, lat in ring]
    if points and points[0] != points[-1]:
        points.append(points[0])
    return points


def point_in_polygon(point: LonLat, polygon: Sequence[LonLat]) -> bool:
    """
    점이 폴리곤 내부에 있는지 Ray casting 알고리즘으로 확인합니다.

    Args:
        point: 확인할 점 (경도, 위도)
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        점이 폴리곤 내부에 있으면 True, 외부에 있으면 False
    """
    if len(polygon) < 3:
        return False

    x, y = point
    n = len(polygon)
    inside = False

    p1x, p1y = polygon[0]
    for i in range(1, n + 1):
        p2x, p2y = polygon[i % n]
        # min < y <= max 이면 p1y != p2y 가 보장됨
        if min(p1y, p2y) < y <= max(p1y, p2y) and x <= max(p1x, p2x):
            xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
            if p1x == p2x or x <= xinters:
                inside = not inside
        p1x, p1y = p2x, p2y

    return inside


def calculate_bounding_box(polygon: Sequence[LonLat]) -> BoundingBox:
    """
    폴리곤의 경계 상자를 계산합니다.

    Args:
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        (min_lon, min_lat, max_lon, max_lat)
    """
    if not polygon:
        raise GeometryError("빈 폴리곤의 경계 상자는 계산할 수 없습니다")

    lons = [p[0] for p in polygon]
    lats = [p[1] for p in polygon]

    return (min(lons), min(lats), max(lons), max(lats))


def expand_bounding_box(bbox: BoundingBox, margin_km: float) -> BoundingBox:
    """
    경계 상자를 거리 여유만큼 각도 단위로 확장합니다.

    위도는 margin_km / 111.32 도, 경도는 상자 중앙 위도의 cos 값으로
    보정한 만큼 확장합니다.

    Args:
        bbox: (min_lon, min_lat, max_lon, max_lat)
        margin_km: 확장 거리 (킬로미터)

    Returns:
        확장된 경계 상자
    """
    min_lon, min_lat, max_lon, max_lat = bbox
    if margin_km <= 0:
        return bbox

    dlat = margin_km / KM_PER_DEGREE
    mid_lat = (min_lat + max_lat) / 2
    # 극지방에서 0 으로 나누지 않도록 하한
    cos_lat = max(math.cos(math.radians(mid_lat)), 0.01)
    dlon = margin_km / (KM_PER_DEGREE * cos_lat)

    return (
        max(-180.0, min_lon - dlon),
        max(-90.0, min_lat - dlat),
        min(180.0, max_lon + dlon),
        min(90.0, max_lat + dlat),
    )


def point_in_bounding_box(point: LonLat, bbox: BoundingBox) -> bool:
    """점이 경계 상자 안(경계 포함)에 있는지 확인합니다."""
    lon, lat = point
    min_lon, min_lat, max_lon, max_lat = bbox
    return min_lon <= lon <= max_lon and min_lat <= lat <= max_lat


def _to_local_km(vertex: LonLat, origin: LonLat) -> Tuple[float, float]:
    """기준점을 원점으로 하는 등장방형 평면(km) 좌표로 변환합니다."""
    lon, lat = vertex
    lon0, lat0 = origin
    dlon = (lon - lon0 + 180.0) % 360.0 - 180.0
    x = dlon * KM_PER_DEGREE * math.cos(math.radians(lat0))
    y = (lat - lat0) * KM_PER_DEGREE
    return (x, y)


def buffered_polygon_contains(point: LonLat,
                              polygon: Sequence[LonLat],
                              buffer_km: float) -> bool:
    """
    점이 버퍼로 확장된 폴리곤 안에 있는지 확인합니다.

    폴리곤을 점 중심의 국지 평면(km)으로 투영한 뒤 shapely 로 버퍼링합니다.

    Args:
        point: 확인할 점 (경도, 위도)
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]
        buffer_km: 버퍼 거리 (킬로미터)

    Returns:
        버퍼 폴리곤이 점을 포함하면 True

    Raises:
        GeometryError: 도형이 퇴화되어 버퍼링할 수 없는 경우
    """
    coords = [(float(lon), float(lat)) for lon, lat in polygon]
    if not all(math.isfinite(c) for xy in coords for c in xy):
        raise GeometryError("유한하지 않은 좌표가 포함된 폴리곤")
    if len(set(coords)) < 3:
        raise GeometryError(f"서로 다른 꼭짓점이 3개 미만: {len(set(coords))}")

    projected = [_to_local_km(c, point) for c in coords]
    try:
        shape = Polygon(projected)
        if not shape.is_valid:
            # 자기교차 링 보정
            shape = shape.buffer(0)
        if shape.is_empty or shape.area <= 0:
            raise GeometryError("면적이 0인 폴리곤")
        buffered = shape.buffer(buffer_km)
    except (ValueError, GEOSException) as e:
        if isinstance(e, GeometryError):
            raise
        raise GeometryError(f"폴리곤 버퍼링 실패: {e}") from e

    if buffered.is_empty:
        raise GeometryError("버퍼 결과가 비어 있음")
    return buffered.covers(Point(0.0, 0.0))


def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True
    """
    return (math.isfinite(lat) and math.isfinite(lon)
            and -90 <= lat <= 90 and -180 <= lon <= 180)
