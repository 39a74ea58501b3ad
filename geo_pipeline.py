"""
受診レコード → 地図ポイント + カバレッジ の集計処理

(レコード, 照合インデックス, 絞り込み条件) だけで結果が決まる。
照合インデックスは読み取りのみなので、複数の実行が同時に走っても干渉しない。

照合インデックスが未読み込み（None）のときは市区町村マスタとの一致が使えないため、
「…市」「…市…区」の形で市区町村を推定できた地点だけが未照合（unmatched）になる。
町村など正規表現で市区町村を特定できないレコードは住所不明（missing）として数える。
"""

import logging
from collections import namedtuple
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from tqdm import tqdm

from coordinate_resolver import CoordinateResolver
from coverage_reporter import build_coverage
from gazetteer_index import GazetteerIndex
from location_aggregator import aggregate_locations
from models import DerivedSegments, VisitRecord
from record_filter import RecordFilter
from segment_resolver import SegmentResolver

logger = logging.getLogger(__name__)

PipelineResult = namedtuple('PipelineResult', ['points', 'coverage', 'aggregates'])


def to_visit_records(records: Iterable[Union[VisitRecord, Dict[str, Any]]]) -> List[VisitRecord]:
    """dict（ダッシュボード形式）が混ざっていれば VisitRecord に変換"""
    return [record if isinstance(record, VisitRecord) else VisitRecord.from_dict(record) for record in records]


def segment_records(records: List[VisitRecord], resolver: SegmentResolver,
                    show_progress: bool = False) -> Tuple[List[Tuple[VisitRecord, DerivedSegments]], int]:
    """
    レコードごとにセグメントを導出

    Args:
        records: 受診レコード
        resolver: SegmentResolver
        show_progress: 進捗バーを表示するか

    Returns:
        ((レコード, セグメント) のリスト, 市区町村を特定できなかった件数)
    """
    resolved = []
    missing_count = 0

    with tqdm(total=len(records), desc="住所セグメント導出中", disable=not show_progress) as pbar:
        for record in records:
            segments = resolver.resolve(record)
            if segments is None or not segments.city:
                missing_count += 1
            else:
                resolved.append((record, segments))

            pbar.update(1)
            pbar.set_postfix({
                'resolved': len(resolved),
                'missing': missing_count
            }, refresh=False)

    return resolved, missing_count


def run_pipeline(records: Iterable[Union[VisitRecord, Dict[str, Any]]],
                 index: Optional[GazetteerIndex],
                 record_filter: Optional[RecordFilter] = None,
                 show_progress: bool = False) -> PipelineResult:
    """
    地図ポイントとカバレッジを計算

    Args:
        records: 受診レコード
        index: 照合インデックス。未読み込みなら None（全件未照合になる）
        record_filter: 絞り込み条件
        show_progress: 進捗バーを表示するか

    Returns:
        PipelineResult(points, coverage, aggregates)
    """
    visit_records = to_visit_records(records)
    if record_filter is not None:
        visit_records = record_filter.apply(visit_records)

    resolver = SegmentResolver(index)
    pairs, missing_count = segment_records(visit_records, resolver, show_progress=show_progress)
    aggregates = aggregate_locations(pairs)

    selected_age_band = record_filter.age_band if record_filter is not None else None
    points, unmatched_count = CoordinateResolver(index).resolve(aggregates, selected_age_band)

    coverage = build_coverage(len(visit_records), points, missing_count, unmatched_count)
    logger.info(
        f"集計完了 - 対象: {coverage.filtered_total}件, 地点: {len(points)}件, "
        f"カバレッジ: {coverage.coverage_percentage:.1f}%"
    )
    return PipelineResult(points, coverage, aggregates)
