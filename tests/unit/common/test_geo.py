"""
geo 모듈 단위 테스트

이 모듈은 거리 계산, 폴리곤 포함 판정, 경계 상자, 버퍼 폴리곤 기능을 테스트합니다.
"""

import math

import pytest
from hypothesis import given, strategies as st

from capwatch.common.geo import (
    GeometryError,
    KM_PER_DEGREE,
    buffered_polygon_contains,
    calculate_bounding_box,
    close_ring,
    expand_bounding_box,
    haversine_distance,
    point_in_bounding_box,
    point_in_polygon,
    validate_coordinates,
)


class TestHaversineDistance:
    """Haversine 거리 계산 테스트"""

    def test_same_point_is_zero(self):
        """같은 지점의 거리는 0"""
        assert haversine_distance(46.8, -71.2, 46.8, -71.2) == pytest.approx(0.0)

    def test_known_distance(self):
        """몬트리올-퀘벡 시티 거리 (약 233km)"""
        distance = haversine_distance(45.5017, -73.5673, 46.8139, -71.2080)
        assert 225 < distance < 240

    def test_one_degree_latitude(self):
        """위도 1도는 약 111km"""
        assert haversine_distance(0, 0, 1, 0) == pytest.approx(111.19, abs=0.1)

    def test_antipodal_points(self):
        """대척점 거리는 반원주를 넘지 않음"""
        distance = haversine_distance(0, 0, 0, 180)
        assert distance == pytest.approx(math.pi * 6371.0, rel=1e-6)

    @given(
        lat1=st.floats(min_value=-90, max_value=90),
        lon1=st.floats(min_value=-180, max_value=180),
        lat2=st.floats(min_value=-90, max_value=90),
        lon2=st.floats(min_value=-180, max_value=180),
    )
    def test_symmetric_and_bounded(self, lat1, lon1, lat2, lon2):
        """거리는 대칭이고 0 이상, 반원주 이하"""
        d1 = haversine_distance(lat1, lon1, lat2, lon2)
        d2 = haversine_distance(lat2, lon2, lat1, lon1)
        assert d1 == pytest.approx(d2, abs=1e-6)
        assert 0 <= d1 <= math.pi * 6371.0 + 1e-6


class TestPolygon:
    """폴리곤 포함 판정 테스트"""

    def test_close_ring_appends_first_point(self):
        """열린 링은 첫 점을 덧붙여 닫음"""
        ring = close_ring([(0, 0), (1, 0), (1, 1)])
        assert ring[0] == ring[-1]
        assert len(ring) == 4

    def test_close_ring_keeps_closed_ring(self):
        """이미 닫힌 링은 그대로"""
        ring = close_ring([(0, 0), (1, 0), (1, 1), (0, 0)])
        assert len(ring) == 4

    def test_point_inside(self, sample_polygon):
        """내부 점"""
        assert point_in_polygon((-71.2, 46.8), sample_polygon) is True

    def test_point_outside(self, sample_polygon):
        """외부 점"""
        assert point_in_polygon((-73.5, 45.5), sample_polygon) is False

    def test_too_few_vertices(self):
        """꼭짓점 3개 미만은 항상 False"""
        assert point_in_polygon((0, 0), [(0, 0), (1, 1)]) is False

    def test_concave_polygon(self):
        """오목 폴리곤의 움푹 들어간 부분은 외부"""
        ring = close_ring([(0, 0), (4, 0), (4, 4), (2, 1), (0, 4)])
        assert point_in_polygon((1, 0.5), ring) is True
        assert point_in_polygon((2, 3), ring) is False


class TestBoundingBox:
    """경계 상자 테스트"""

    def test_calculate(self, sample_polygon):
        """경계 상자 계산"""
        assert calculate_bounding_box(sample_polygon) == (-71.6, 46.5, -70.8, 47.1)

    def test_empty_polygon_raises(self):
        """빈 폴리곤은 오류"""
        with pytest.raises(GeometryError):
            calculate_bounding_box([])

    def test_expand_latitude_margin(self):
        """위도 방향 확장량은 margin / 111.32 도"""
        expanded = expand_bounding_box((0.0, 0.0, 1.0, 1.0), 30.0)
        assert expanded[1] == pytest.approx(-30.0 / KM_PER_DEGREE)
        assert expanded[3] == pytest.approx(1.0 + 30.0 / KM_PER_DEGREE)

    def test_expand_longitude_wider_at_high_latitude(self):
        """고위도에서는 경도 방향 확장이 더 큼"""
        low = expand_bounding_box((0.0, 0.0, 0.0, 0.0), 30.0)
        high = expand_bounding_box((0.0, 60.0, 0.0, 60.0), 30.0)
        assert (high[2] - high[0]) > (low[2] - low[0])

    def test_expand_is_clamped(self):
        """유효 범위를 넘지 않음"""
        expanded = expand_bounding_box((179.9, 89.9, 180.0, 90.0), 100.0)
        assert expanded[2] <= 180.0
        assert expanded[3] <= 90.0

    def test_point_in_bounding_box_inclusive(self):
        """경계 위의 점은 포함"""
        assert point_in_bounding_box((1.0, 1.0), (0.0, 0.0, 1.0, 1.0)) is True
        assert point_in_bounding_box((1.1, 1.0), (0.0, 0.0, 1.0, 1.0)) is False


class TestBufferedPolygon:
    """버퍼 폴리곤 포함 판정 테스트"""

    def test_point_within_buffer(self, sample_polygon):
        """경계에서 약 20km 떨어진 점은 30km 버퍼 안"""
        # 남쪽 경계(위도 46.5)에서 0.18도 남쪽 ≈ 20km
        assert buffered_polygon_contains((-71.2, 46.32), sample_polygon, 30.0) is True

    def test_point_beyond_buffer(self, sample_polygon):
        """경계에서 약 45km 떨어진 점은 30km 버퍼 밖"""
        assert buffered_polygon_contains((-71.2, 46.1), sample_polygon, 30.0) is False

    def test_degenerate_ring_raises(self):
        """같은 점이 반복되는 링은 퇴화 도형"""
        with pytest.raises(GeometryError):
            buffered_polygon_contains((0, 0), [(1, 1), (1, 1), (1, 1), (1, 1)], 10.0)

    def test_collinear_ring_raises(self):
        """일직선 링은 면적이 0"""
        with pytest.raises(GeometryError):
            buffered_polygon_contains((0, 0), [(0, 0), (1, 0), (2, 0), (0, 0)], 10.0)

    def test_non_finite_raises(self):
        """NaN 좌표는 오류"""
        with pytest.raises(GeometryError):
            buffered_polygon_contains((0, 0), [(0, 0), (float("nan"), 0), (1, 1)], 10.0)


class TestValidateCoordinates:
    """좌표 검증 테스트"""

    @pytest.mark.parametrize("lat,lon,expected", [
        (0, 0, True),
        (90, 180, True),
        (-90, -180, True),
        (91, 0, False),
        (0, 181, False),
        (float("nan"), 0, False),
    ])
    def test_validate(self, lat, lon, expected):
        """위도/경도 범위 검증"""
        assert validate_coordinates(lat, lon) is expected
