"""
Core domain models for capwatch.

This module defines the alert domain models using Pydantic v2
for type safety and validation, together with the closed
vocabularies used by CAP documents.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, Field


class _CapVocabulary(str, Enum):
    """대소문자 무시 매칭과 Unknown 폴백을 지원하는 CAP 어휘 기반 클래스"""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return cls("Unknown")

    @classmethod
    def parse(cls, value: Optional[str]):
        """None 이나 알 수 없는 값은 Unknown 으로 변환합니다."""
        return cls(value if value is not None else "Unknown")


class Severity(_CapVocabulary):
    EXTREME = "Extreme"
    SEVERE = "Severe"
    MODERATE = "Moderate"
    MINOR = "Minor"
    UNKNOWN = "Unknown"


class Urgency(_CapVocabulary):
    IMMEDIATE = "Immediate"
    EXPECTED = "Expected"
    FUTURE = "Future"
    PAST = "Past"
    UNKNOWN = "Unknown"


class Certainty(_CapVocabulary):
    OBSERVED = "Observed"
    LIKELY = "Likely"
    POSSIBLE = "Possible"
    UNLIKELY = "Unlikely"
    UNKNOWN = "Unknown"


# 정렬용 심각도 순서 (높을수록 위험)
SEVERITY_RANK = {
    Severity.UNKNOWN: 0,
    Severity.MINOR: 1,
    Severity.MODERATE: 2,
    Severity.SEVERE: 3,
    Severity.EXTREME: 4,
}


class AlertParseError(ValueError):
    """경보 문서를 해석할 수 없음"""

    def __init__(self, source_path: str, reason: str):
        super().__init__(f"{source_path}: {reason}")
        self.source_path = source_path
        self.reason = reason


class Coordinate(BaseModel):
    """호출자 위치"""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    def as_lonlat(self) -> Tuple[float, float]:
        return (self.longitude, self.latitude)


class Circle(BaseModel):
    """원형 영역 (중심은 경도, 위도 순)"""
    center: Tuple[float, float]
    radius_km: float


class Area(BaseModel):
    """경보 영역 모델"""
    description: str = ""
    polygon: Optional[List[Tuple[float, float]]] = None
    circle: Optional[Circle] = None


class Alert(BaseModel):
    """하나의 논리적 위험 경보"""
    id: str
    title: str = "Weather Alert"
    description: str = ""
    instruction: Optional[str] = None
    severity: Severity = Severity.UNKNOWN
    urgency: Urgency = Urgency.UNKNOWN
    certainty: Certainty = Certainty.UNKNOWN
    effective: Optional[datetime] = None
    expires: Optional[datetime] = None
    sent: Optional[datetime] = None
    areas: List[Area] = Field(default_factory=list)
    source_path: str
    event: Optional[str] = None
    msg_type: str = "Alert"
    references: List[str] = Field(default_factory=list)
    language: Optional[str] = None
    web: Optional[str] = None
    parameters: Dict[str, str] = Field(default_factory=dict)

    @property
    def timestamp(self) -> Optional[datetime]:
        """최신성 비교 기준 시각 (sent, 없으면 effective)"""
        return self.sent or self.effective


class RelevanceDecision(BaseModel):
    """위치 관련성 평가 결과 모델"""
    affected: bool
    reason: str
    tier: Literal["polygon", "polygon_buffer", "bounding_box", "circle", "name", "none"]
    area: Optional[str] = None


class DescriptionSections(BaseModel):
    """EC 경보 본문의 What/When/Where 구획"""
    summary: Optional[str] = None
    what: Optional[str] = None
    when: Optional[str] = None
    where: Optional[str] = None
    remarks: Optional[str] = None
    in_effect_for: Optional[str] = None


class AlertView(BaseModel):
    """표시용 경보 레코드"""
    id: str
    title: str
    formatted_description: str
    severity: Severity
    urgency: Urgency
    certainty: Certainty
    effective: Optional[datetime] = None
    expires: Optional[datetime] = None
    link: str
    affected_area_names: List[str] = Field(default_factory=list)
    alert_type: Literal["extreme", "severe", "moderate", "info"] = "info"
    instruction: Optional[str] = None
    sections: Optional[DescriptionSections] = None


class AlertEvent(BaseModel):
    """새 경보 알림 이벤트"""
    alert_id: str
    title: str
    body: str
    link: str
    severity: Severity
