"""
患者住所マップ集計のデータ型
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from config import AGE_BAND_IDS, DEFAULT_DEPARTMENT


def _clean_optional(value: Any) -> Optional[Any]:
    """None / NaN / 空文字を None にそろえる"""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and value.strip() == '':
        return None
    return value


@dataclass
class VisitRecord:
    """ダッシュボードから渡される受診レコード"""
    department: str
    reservation_month: str
    patient_age: Optional[float] = None
    patient_prefecture: Optional[str] = None
    patient_city: Optional[str] = None
    patient_town: Optional[str] = None
    patient_base_town: Optional[str] = None
    patient_address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VisitRecord':
        """
        ダッシュボード形式（camelCase）の辞書から生成

        Args:
            data: {department, reservationMonth, patientAge, patientAddress, ...}

        Returns:
            VisitRecord
        """
        department = _clean_optional(data.get('department'))
        age = _clean_optional(data.get('patientAge'))
        if age is not None and not isinstance(age, (int, float)):
            try:
                age = float(age)
            except (TypeError, ValueError):
                age = None

        return cls(
            department=str(department).strip() if department is not None else DEFAULT_DEPARTMENT,
            reservation_month=str(_clean_optional(data.get('reservationMonth')) or ''),
            patient_age=age,
            patient_prefecture=_clean_optional(data.get('patientPrefecture')),
            patient_city=_clean_optional(data.get('patientCity')),
            patient_town=_clean_optional(data.get('patientTown')),
            patient_base_town=_clean_optional(data.get('patientBaseTown')),
            patient_address=_clean_optional(data.get('patientAddress')),
        )


@dataclass
class DerivedSegments:
    prefecture: Optional[str]
    city: Optional[str]
    town: Optional[str]
    base_town: Optional[str]
    location_label: str
    location_key: Optional[str]
    base_location_key: Optional[str]
    # 町名をどの手がかりから得たか（explicit / chome_token / hyphen / trailing_digits）
    town_source: Optional[str] = None


@dataclass(frozen=True)
class GazetteerTownEntry:
    prefecture: str
    city: str
    town: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class GazetteerMunicipalityEntry:
    prefecture: str
    city: str
    latitude: float
    longitude: float


def empty_age_histogram() -> Dict[str, int]:
    return {band_id: 0 for band_id in AGE_BAND_IDS}


@dataclass
class LocationAggregate:
    id: str
    segments: DerivedSegments
    total: int = 0
    age_band_histogram: Dict[str, int] = field(default_factory=empty_age_histogram)
    department_histogram: Dict[str, int] = field(default_factory=dict)

    def top_departments(self, limit: int = 3) -> List[Tuple[str, int]]:
        """件数の多い診療科を上位から返す（同数は先に現れた順）"""
        ordered = sorted(self.department_histogram.items(), key=lambda item: -item[1])
        return ordered[:limit]


@dataclass
class ResolvedMapPoint:
    aggregate: LocationAggregate
    latitude: float
    longitude: float
    matched_gazetteer_name: str
    match_level: str
    dominant_age_band: str

    @property
    def id(self) -> str:
        return self.aggregate.id

    @property
    def total(self) -> int:
        return self.aggregate.total

    @property
    def location_label(self) -> str:
        return self.aggregate.segments.location_label

    def to_dict(self) -> Dict[str, Any]:
        """出力用のフラットな辞書に変換"""
        segments = self.aggregate.segments
        return {
            'id': self.id,
            'prefecture': segments.prefecture,
            'city': segments.city,
            'town': segments.town,
            'base_town': segments.base_town,
            'location_label': segments.location_label,
            'town_source': segments.town_source,
            'total': self.total,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'matched_gazetteer_name': self.matched_gazetteer_name,
            'match_level': self.match_level,
            'dominant_age_band': self.dominant_age_band,
            'age_band_histogram': json.dumps(self.aggregate.age_band_histogram, ensure_ascii=False),
            'department_histogram': json.dumps(self.aggregate.department_histogram, ensure_ascii=False),
        }


@dataclass
class CoverageSummary:
    filtered_total: int
    matched_total: int
    missing_location_count: int
    unmatched_count: int
    coverage_percentage: float

    @property
    def unresolved_total(self) -> int:
        return self.missing_location_count + self.unmatched_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filtered_total': self.filtered_total,
            'matched_total': self.matched_total,
            'missing_location_count': self.missing_location_count,
            'unmatched_count': self.unmatched_count,
            'unresolved_total': self.unresolved_total,
            'coverage_percentage': self.coverage_percentage,
        }
