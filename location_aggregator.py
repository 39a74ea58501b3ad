"""
地点ごとの集計（件数・年代別・診療科別）
"""

import logging
import math
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from config import AGE_BANDS, MAX_VALID_AGE, UNKNOWN_AGE_BAND
from models import DerivedSegments, LocationAggregate, VisitRecord

logger = logging.getLogger(__name__)


def classify_age_band(age: Optional[float]) -> str:
    """
    年齢を年代区分IDに変換

    None / NaN / 負数 / 120超は unknown。区分の間に落ちる小数も unknown になる。
    """
    if age is None:
        return UNKNOWN_AGE_BAND
    try:
        age = float(age)
    except (TypeError, ValueError):
        return UNKNOWN_AGE_BAND
    if math.isnan(age) or age < 0 or age > MAX_VALID_AGE:
        return UNKNOWN_AGE_BAND

    for band_id, _, lower, upper in AGE_BANDS:
        if lower is None:
            continue
        if age >= lower and (upper is None or age <= upper):
            return band_id
    return UNKNOWN_AGE_BAND


def grouping_key(segments: DerivedSegments) -> str:
    return segments.location_key or segments.base_location_key or f"{segments.city}:city"


class LocationAggregator:
    def __init__(self):
        self._aggregates: Dict[str, LocationAggregate] = {}

    def add(self, record: VisitRecord, segments: DerivedSegments) -> LocationAggregate:
        """
        レコードを該当地点の集計に加える

        Args:
            record: 受診レコード
            segments: SegmentResolver で導出したセグメント

        Returns:
            更新後の LocationAggregate
        """
        key = grouping_key(segments)
        aggregate = self._aggregates.get(key)
        if aggregate is None:
            aggregate = LocationAggregate(id=key, segments=replace(segments))
            self._aggregates[key] = aggregate

        aggregate.total += 1
        aggregate.age_band_histogram[classify_age_band(record.patient_age)] += 1
        department = record.department
        aggregate.department_histogram[department] = aggregate.department_histogram.get(department, 0) + 1
        return aggregate

    def aggregates(self) -> List[LocationAggregate]:
        """集計結果（最初に現れた順）"""
        return list(self._aggregates.values())

    def __len__(self) -> int:
        return len(self._aggregates)


def aggregate_locations(pairs: Iterable[Tuple[VisitRecord, DerivedSegments]]) -> List[LocationAggregate]:
    aggregator = LocationAggregator()
    for record, segments in pairs:
        aggregator.add(record, segments)
    logger.debug(f"地点数: {len(aggregator)}件")
    return aggregator.aggregates()
