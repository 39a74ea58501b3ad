"""
照合カバレッジの集計
"""

import logging
import math
from typing import Iterable

from models import CoverageSummary, ResolvedMapPoint

logger = logging.getLogger(__name__)


def round1(value: float) -> float:
    """小数第1位で四捨五入（0.5は切り上げ）"""
    return math.floor(value * 10 + 0.5) / 10


def build_coverage(filtered_total: int, points: Iterable[ResolvedMapPoint],
                   missing_location_count: int, unmatched_count: int) -> CoverageSummary:
    """
    カバレッジを計算

    Args:
        filtered_total: 絞り込み後のレコード数
        points: 座標が付いた地点
        missing_location_count: 市区町村を特定できなかったレコード数
        unmatched_count: 座標が見つからなかったレコード数

    Returns:
        CoverageSummary
    """
    matched_total = sum(point.total for point in points)
    coverage = round1(matched_total / filtered_total * 100) if filtered_total > 0 else 0.0

    summary = CoverageSummary(
        filtered_total=filtered_total,
        matched_total=matched_total,
        missing_location_count=missing_location_count,
        unmatched_count=unmatched_count,
        coverage_percentage=coverage,
    )

    if matched_total + summary.unresolved_total != filtered_total:
        logger.warning(
            f"件数が一致しません - 対象: {filtered_total}件, 照合済み: {matched_total}件, "
            f"住所不明: {missing_location_count}件, 未照合: {unmatched_count}件"
        )
    return summary
