"""
地点集計への座標割り当て

照合の順序（最初に見つかったものを使う）:

1. 町丁目の完全一致（地点キー → ベース地点キー）
2. ベース町名の重心（地点キー → ベース地点キー）
3. 1, 2 を都道府県を空にしたキーで再試行
4. 市区町村マスタ（都道府県+市区町村）
5. 市区町村マスタ（市区町村のみ。都道府県が不明な場合だけ）

1〜3 は match_level="town"、4〜5 は "city"。どこにも当たらなければ点は作らない。
"""

import logging
from collections import namedtuple
from typing import Dict, Iterable, List, Optional, Tuple

from config import AGE_BAND_IDS, KEY_SEPARATOR, UNKNOWN_AGE_BAND
from gazetteer_index import GazetteerIndex
from location_keys import blank_prefecture
from models import LocationAggregate, ResolvedMapPoint

logger = logging.getLogger(__name__)

TOWN_LEVEL = "town"
CITY_LEVEL = "city"

CoordinateMatch = namedtuple('CoordinateMatch', ['latitude', 'longitude', 'name', 'level'])


def dominant_age_band(histogram: Dict[str, int], selected_age_band: Optional[str] = None) -> str:
    """
    最も件数の多い年代区分

    同数なら若い区分を優先する。unknown は他の区分がすべて0件のときだけ選ばれる。

    Args:
        histogram: 年代区分ID → 件数
        selected_age_band: 年代で絞り込んでいる場合はその区分を返す
    """
    if selected_age_band is not None:
        return selected_age_band

    best_id = UNKNOWN_AGE_BAND
    best_value = 0
    for band_id in AGE_BAND_IDS:
        if band_id == UNKNOWN_AGE_BAND:
            continue
        value = histogram.get(band_id, 0)
        if value > best_value:
            best_id, best_value = band_id, value
    return best_id


def _town_keys(aggregate: LocationAggregate) -> List[str]:
    keys = []
    for key in (aggregate.segments.location_key, aggregate.segments.base_location_key):
        # 末尾が区切り文字のキーは市区町村単位
        if key and not key.endswith(KEY_SEPARATOR) and key not in keys:
            keys.append(key)
    return keys


class CoordinateResolver:
    def __init__(self, index: Optional[GazetteerIndex]):
        """
        Args:
            index: 照合インデックス。None（未読み込み）の場合はすべて未照合になる
        """
        self.index = index

    def locate(self, aggregate: LocationAggregate) -> Optional[CoordinateMatch]:
        """
        1地点の座標を探す

        Returns:
            CoordinateMatch。見つからなければ None
        """
        if self.index is None:
            return None

        keys = _town_keys(aggregate)
        for candidate_keys in (keys, [blank_prefecture(key) for key in keys]):
            for lookup in (self.index.exact_town, self.index.aggregated_base_town):
                for key in candidate_keys:
                    coordinate = lookup(key)
                    if coordinate is not None:
                        return CoordinateMatch(coordinate.latitude, coordinate.longitude,
                                               coordinate.display_town, TOWN_LEVEL)

        segments = aggregate.segments
        municipality = self.index.municipality(segments.prefecture, segments.city)
        if municipality is None and not segments.prefecture:
            municipality = self.index.municipality_by_city(segments.city)
        if municipality is not None:
            return CoordinateMatch(municipality.latitude, municipality.longitude,
                                   municipality.city, CITY_LEVEL)
        return None

    def resolve(self, aggregates: Iterable[LocationAggregate],
                selected_age_band: Optional[str] = None) -> Tuple[List[ResolvedMapPoint], int]:
        """
        地点集計をまとめて座標に変換

        Args:
            aggregates: 地点集計
            selected_age_band: 年代で絞り込んでいる場合の区分ID

        Returns:
            (地図ポイントのリスト, 未照合件数)
        """
        points = []
        unmatched_count = 0

        for aggregate in aggregates:
            match = self.locate(aggregate)
            if match is None:
                unmatched_count += aggregate.total
                logger.debug(f"座標なし: {aggregate.segments.location_label} ({aggregate.total}件)")
                continue

            points.append(ResolvedMapPoint(
                aggregate=aggregate,
                latitude=match.latitude,
                longitude=match.longitude,
                matched_gazetteer_name=match.name,
                match_level=match.level,
                dominant_age_band=dominant_age_band(aggregate.age_band_histogram, selected_age_band),
            ))

        if self.index is None and unmatched_count:
            logger.warning(f"住所マスタが未読み込みのため全件を未照合として扱います: {unmatched_count}件")

        return points, unmatched_count
