"""
集計前のレコード絞り込み（診療科・月・年代）
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from location_aggregator import classify_age_band
from models import VisitRecord


@dataclass(frozen=True)
class RecordFilter:
    """None の条件は絞り込まない。month を指定した場合は start_month / end_month より優先"""
    department: Optional[str] = None
    month: Optional[str] = None
    start_month: Optional[str] = None
    end_month: Optional[str] = None
    age_band: Optional[str] = None

    def matches(self, record: VisitRecord) -> bool:
        if self.department is not None and record.department != self.department:
            return False

        month = record.reservation_month
        if self.month is not None:
            if month != self.month:
                return False
        else:
            # YYYY-MM は文字列比較で順序が決まる
            if self.start_month and month < self.start_month:
                return False
            if self.end_month and month > self.end_month:
                return False

        if self.age_band is not None and classify_age_band(record.patient_age) != self.age_band:
            return False
        return True

    def apply(self, records: Iterable[VisitRecord]) -> List[VisitRecord]:
        return [record for record in records if self.matches(record)]
