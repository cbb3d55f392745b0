"""
Region gazetteer for capwatch.

This module provides a hand-authored table mapping approximate
bounding boxes of Canadian localities to canonical region names,
nearby forecast-region synonyms and province abbreviations. It is
used only as a fallback when an alert area carries no usable
geometry, and to pick the issuing office and summary-feed region
for a coordinate.
"""

import re
import unicodedata
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from capwatch.common.geo import haversine_distance, point_in_bounding_box

# 주/준주 코드 → 이름
PROVINCE_NAMES = {
    "AB": "Alberta",
    "BC": "British Columbia",
    "MB": "Manitoba",
    "NB": "New Brunswick",
    "NL": "Newfoundland and Labrador",
    "NS": "Nova Scotia",
    "NT": "Northwest Territories",
    "NU": "Nunavut",
    "ON": "Ontario",
    "PE": "Prince Edward Island",
    "QC": "Quebec",
    "SK": "Saskatchewan",
    "YT": "Yukon",
}

# 주/준주별 담당 예보 센터 (발령 기관 코드)
PROVINCE_OFFICES = {
    "BC": "CWVR", "YT": "CWVR",
    "AB": "CWWG", "SK": "CWWG", "MB": "CWWG", "NT": "CWWG", "NU": "CWWG",
    "ON": "CWTO",
    "QC": "CWUL",
    "NB": "CWHX", "NS": "CWHX", "PE": "CWHX", "NL": "CWHX",
}


class GazetteerEntry(BaseModel):
    """지명 사전 항목"""
    name: str
    region_code: str
    bbox: Tuple[float, float, float, float]   # (min_lon, min_lat, max_lon, max_lat)
    nearby: List[str] = Field(default_factory=list)

    @property
    def region(self) -> str:
        return PROVINCE_NAMES.get(self.region_code, self.region_code)

    @property
    def center(self) -> Tuple[float, float]:
        min_lon, min_lat, max_lon, max_lat = self.bbox
        return ((min_lon + max_lon) / 2, (min_lat + max_lat) / 2)


class LocalityMatch(BaseModel):
    """좌표에 대한 지명 사전 조회 결과"""
    name: str
    region: str
    region_code: str
    nearby: List[str] = Field(default_factory=list)
    distance_km: float = 0.0

    def search_terms(self) -> List[str]:
        """지역 설명 문자열과 비교할 이름 목록 (약어 제외)"""
        terms = [self.name, *self.nearby, self.region]
        seen = set()
        unique = []
        for term in terms:
            key = fold(term)
            if key and key not in seen:
                seen.add(key)
                unique.append(term)
        return unique


def fold(text: str) -> str:
    """악센트를 제거하고 소문자로 정규화합니다."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


def _box(lat: float, lon: float, half_deg: float = 0.3) -> Tuple[float, float, float, float]:
    return (lon - half_deg, lat - half_deg, lon + half_deg, lat + half_deg)


_QUEBEC_CITY_NEARBY = ["Québec", "Lévis", "Chaudière-Appalaches", "Beauce", "Etchemin",
                       "Montmagny", "Bellechasse"]

# 구체적인 상자를 먼저 배치 (첫 번째로 포함하는 항목이 선택됨)
DEFAULT_ENTRIES: List[GazetteerEntry] = [
    GazetteerEntry(name="Lévis", region_code="QC", bbox=(-71.2, 46.7, -71.0, 46.9),
                   nearby=_QUEBEC_CITY_NEARBY),
    GazetteerEntry(name="Québec", region_code="QC", bbox=(-71.3, 46.7, -71.2, 46.9),
                   nearby=_QUEBEC_CITY_NEARBY),
    GazetteerEntry(name="Montréal", region_code="QC", bbox=(-73.7, 45.4, -73.4, 45.7),
                   nearby=["Montréal", "Laval", "Montérégie", "Laurentides", "Lanaudière"]),
    GazetteerEntry(name="Toronto", region_code="ON", bbox=_box(43.6532, -79.3832),
                   nearby=["City of Toronto", "York - Durham", "Peel - Halton"]),
    GazetteerEntry(name="Ottawa", region_code="ON", bbox=_box(45.4215, -75.6972),
                   nearby=["Ottawa - Gatineau", "Gatineau", "Prescott - Russell"]),
    GazetteerEntry(name="Hamilton", region_code="ON", bbox=_box(43.2557, -79.8711, 0.2),
                   nearby=["Hamilton - Niagara", "Halton"]),
    GazetteerEntry(name="London", region_code="ON", bbox=_box(42.9849, -81.2453),
                   nearby=["London - Middlesex", "Middlesex"]),
    GazetteerEntry(name="Vancouver", region_code="BC", bbox=_box(49.2827, -123.1207),
                   nearby=["Metro Vancouver", "Fraser Valley", "Howe Sound"]),
    GazetteerEntry(name="Victoria", region_code="BC", bbox=_box(48.4284, -123.3656, 0.2),
                   nearby=["Greater Victoria", "South Vancouver Island"]),
    GazetteerEntry(name="Calgary", region_code="AB", bbox=_box(51.0447, -114.0719),
                   nearby=["Calgary Metro", "Airdrie", "Okotoks"]),
    GazetteerEntry(name="Edmonton", region_code="AB", bbox=_box(53.5461, -113.4938),
                   nearby=["Edmonton Metro", "St. Albert", "Sherwood Park"]),
    GazetteerEntry(name="Winnipeg", region_code="MB", bbox=_box(49.8951, -97.1384),
                   nearby=["Steinbach", "Selkirk"]),
    GazetteerEntry(name="Saskatoon", region_code="SK", bbox=_box(52.1332, -106.6700),
                   nearby=["Warman", "Martensville"]),
    GazetteerEntry(name="Regina", region_code="SK", bbox=_box(50.4452, -104.6189),
                   nearby=["Moose Jaw", "White City"]),
    GazetteerEntry(name="Halifax", region_code="NS", bbox=_box(44.6488, -63.5752),
                   nearby=["Halifax Metro", "Halifax County", "Dartmouth"]),
    GazetteerEntry(name="Charlottetown", region_code="PE", bbox=_box(46.2382, -63.1311),
                   nearby=["Queens County"]),
    GazetteerEntry(name="Fredericton", region_code="NB", bbox=_box(45.9636, -66.6431),
                   nearby=["Fredericton and Southern York County"]),
    GazetteerEntry(name="St. John's", region_code="NL", bbox=_box(47.5615, -52.7126),
                   nearby=["Avalon Peninsula"]),
    GazetteerEntry(name="Yellowknife", region_code="NT", bbox=_box(62.4540, -114.3718),
                   nearby=["North Slave"]),
    GazetteerEntry(name="Whitehorse", region_code="YT", bbox=_box(60.7212, -135.0568),
                   nearby=["Southern Lakes"]),
    GazetteerEntry(name="Iqaluit", region_code="NU", bbox=_box(63.7467, -68.5170),
                   nearby=["Southern Baffin Island"]),
]


class RegionGazetteer:
    """좌표 → 지명/지역 조회기"""

    def __init__(self, entries: Iterable[GazetteerEntry], max_distance_km: float = 75.0):
        """
        초기화합니다.

        Args:
            entries: 지명 사전 항목 (앞쪽 항목이 우선)
            max_distance_km: 상자 밖 좌표를 가장 가까운 항목에 대응시킬 최대 거리
        """
        self.entries: List[GazetteerEntry] = list(entries)
        self.max_distance_km = max_distance_km

    def resolve(self, point: Tuple[float, float]) -> Optional[LocalityMatch]:
        """
        좌표의 대략적인 지명과 행정 구역을 찾습니다.

        Args:
            point: (경도, 위도)

        Returns:
            LocalityMatch, 대응되는 항목이 없으면 None
        """
        for entry in self.entries:
            if point_in_bounding_box(point, entry.bbox):
                return self._match(entry, 0.0)

        lon, lat = point
        nearest: Optional[GazetteerEntry] = None
        nearest_km = float("inf")
        for entry in self.entries:
            c_lon, c_lat = entry.center
            distance = haversine_distance(lat, lon, c_lat, c_lon)
            if distance < nearest_km:
                nearest, nearest_km = entry, distance

        if nearest is not None and nearest_km <= self.max_distance_km:
            return self._match(nearest, nearest_km)
        return None

    @staticmethod
    def _match(entry: GazetteerEntry, distance_km: float) -> LocalityMatch:
        return LocalityMatch(
            name=entry.name,
            region=entry.region,
            region_code=entry.region_code,
            nearby=list(entry.nearby),
            distance_km=round(distance_km, 3),
        )


def match_area_description(description: str, locality: LocalityMatch) -> Optional[str]:
    """
    지역 설명에 지명, 인근 지역명, 주 이름 또는 주 약어가 포함되는지 확인합니다.

    이름은 악센트와 대소문자를 무시한 부분 문자열로, 약어는 대문자 단어
    단위로 비교합니다.

    Args:
        description: 경보 영역의 자유 텍스트 설명
        locality: 좌표 조회 결과

    Returns:
        일치한 이름, 없으면 None
    """
    if not description:
        return None

    folded = fold(description)
    for term in locality.search_terms():
        if fold(term) in folded:
            return term

    # "ON" 같은 약어는 일반 단어와 겹치므로 대문자 단어 단위로만 비교
    if re.search(rf"\b{re.escape(locality.region_code.upper())}\b", description):
        return locality.region_code
    return None


def office_for_region(region_code: Optional[str]) -> Optional[str]:
    """주 코드에 대응하는 예보 센터 코드를 반환합니다."""
    if not region_code:
        return None
    return PROVINCE_OFFICES.get(region_code.upper())


def feed_region_codes(locality: Optional[LocalityMatch]) -> List[str]:
    """요약 피드 조회에 사용할 지역 코드 목록 (주 코드, 전국 순)"""
    if locality is None:
        return ["ca"]
    return [locality.region_code.lower(), "ca"]


def prioritize_offices(offices: Sequence[str], region_code: Optional[str]) -> List[str]:
    """담당 예보 센터를 목록 맨 앞으로 옮깁니다."""
    ordered = list(dict.fromkeys(offices))
    preferred = office_for_region(region_code)
    if preferred and preferred in ordered:
        ordered.remove(preferred)
        ordered.insert(0, preferred)
    return ordered


DEFAULT_GAZETTEER = RegionGazetteer(DEFAULT_ENTRIES)
