"""
レコードごとの住所セグメント（都道府県・市区町村・町名・ベース町名）の導出

都道府県・市区町村は次の順に試し、項目ごとに最初に得られた値を使う。

1. レコードの分割済み項目
2. 市区町村マスタとの最長一致
3. 正規表現による推定（…市…区 → …市）
4. 都道府県のみ、市区町村名からマスタを引いて補完
"""

import logging
import re
from collections import namedtuple
from typing import Callable, Optional, Sequence

from address_normalizer import (
    classify_chome,
    prepare_address_text,
    remove_chome_suffix,
    remove_whitespace,
    standardize_town_label,
)
from gazetteer_index import GazetteerIndex
from location_keys import make_location_key
from models import DerivedSegments, VisitRecord
from municipality_matcher import MunicipalityMatcher

logger = logging.getLogger(__name__)

PREFECTURES = (
    '北海道', '青森県', '岩手県', '宮城県', '秋田県', '山形県', '福島県', '茨城県', '栃木県', '群馬県',
    '埼玉県', '千葉県', '東京都', '神奈川県', '新潟県', '富山県', '石川県', '福井県', '山梨県', '長野県',
    '岐阜県', '静岡県', '愛知県', '三重県', '滋賀県', '京都府', '大阪府', '兵庫県', '奈良県', '和歌山県',
    '鳥取県', '島根県', '岡山県', '広島県', '山口県', '徳島県', '香川県', '愛媛県', '高知県', '福岡県',
    '佐賀県', '長崎県', '熊本県', '大分県', '宮崎県', '鹿児島県', '沖縄県',
)

CITY_WARD_PATTERN = re.compile(r'^([^\d\-]+?市[^\d\-]+?区)')
# 市名の中に「市」を含む市は最短一致では切れない
CITIES_CONTAINING_SHI = ('四日市市', '廿日市市')
CITY_PATTERN = re.compile(r'^(' + '|'.join(CITIES_CONTAINING_SHI) + r'|[^\d\-]+?市)')

SOURCE_EXPLICIT = "explicit"

# 項目ごとに None を許す。remainder は市区町村より後ろの住所
PlaceMatch = namedtuple('PlaceMatch', ['prefecture', 'city', 'remainder'])

PlaceStrategy = Callable[[VisitRecord, Optional[str], Optional[MunicipalityMatcher]], Optional[PlaceMatch]]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = remove_whitespace(value)
    return cleaned or None


def from_explicit_fields(record: VisitRecord, address: Optional[str],
                         matcher: Optional[MunicipalityMatcher]) -> Optional[PlaceMatch]:
    """分割済みの都道府県・市区町村項目"""
    prefecture = _clean(record.patient_prefecture)
    city = _clean(record.patient_city)
    if not prefecture and not city:
        return None
    return PlaceMatch(prefecture, city, None)


def from_municipality_matcher(record: VisitRecord, address: Optional[str],
                              matcher: Optional[MunicipalityMatcher]) -> Optional[PlaceMatch]:
    """市区町村マスタとの最長一致"""
    if matcher is None or not address:
        return None
    match = matcher.match_prefix(address)
    if match is None:
        return None
    return PlaceMatch(match.prefecture or None, match.city, match.remainder)


def from_legacy_patterns(record: VisitRecord, address: Optional[str],
                         matcher: Optional[MunicipalityMatcher]) -> Optional[PlaceMatch]:
    """都道府県名の一覧と「…市…区」「…市」の正規表現による推定"""
    if not address:
        return None

    prefecture = next((pref for pref in PREFECTURES if address.startswith(pref)), None)
    rest = address[len(prefecture):] if prefecture else address

    match = CITY_WARD_PATTERN.match(rest) or CITY_PATTERN.match(rest)
    if match is None:
        return PlaceMatch(prefecture, None, None) if prefecture else None
    city = match.group(1)
    return PlaceMatch(prefecture, city, rest[len(city):])


PLACE_STRATEGIES: Sequence[PlaceStrategy] = (
    from_explicit_fields,
    from_municipality_matcher,
    from_legacy_patterns,
)


def _strip_place(address: str, prefecture: Optional[str], city: str) -> Optional[str]:
    """住所から都道府県・市区町村を取り除く。市区町村で始まらない住所は別の場所なので None"""
    remaining = address
    if prefecture and remaining.startswith(prefecture):
        remaining = remaining[len(prefecture):]
    if not remaining.startswith(city):
        return None
    return remaining[len(city):]


class SegmentResolver:
    def __init__(self, index: Optional[GazetteerIndex] = None,
                 strategies: Sequence[PlaceStrategy] = PLACE_STRATEGIES):
        """
        Args:
            index: 照合インデックス。未読み込みなら None（正規表現による推定のみ）
            strategies: 都道府県・市区町村の導出手順（優先順）
        """
        self.index = index
        self.matcher = index.municipality_matcher if index is not None else None
        self.strategies = tuple(strategies)

    def resolve(self, record: VisitRecord) -> Optional[DerivedSegments]:
        """
        1レコードのセグメントを導出

        Args:
            record: 受診レコード

        Returns:
            DerivedSegments。市区町村が決まらなければ None
        """
        address = prepare_address_text(record.patient_address)

        prefecture = None
        city = None
        results = []
        for strategy in self.strategies:
            result = strategy(record, address, self.matcher)
            if result is None:
                continue
            results.append(result)
            prefecture = prefecture or result.prefecture
            city = city or result.city

        # 残り部分は採用した市区町村を取り除いて得たものに限る
        remainder = next(
            (result.remainder for result in results
             if result.remainder is not None and result.city == city),
            None,
        )

        if not city:
            logger.debug(f"市区町村を特定できません (住所: {record.patient_address})")
            return None

        if not prefecture and self.index is not None:
            candidate = self.index.municipality_by_city(city)
            if candidate is not None:
                prefecture = _clean(candidate.prefecture)

        if remainder is None and address:
            remainder = _strip_place(address, prefecture, city)

        town, town_source = self._resolve_town(record, remainder)
        base_town = prepare_address_text(record.patient_base_town) or remove_chome_suffix(town)
        if not town and base_town:
            town, town_source = base_town, SOURCE_EXPLICIT

        if not town:
            location_key = make_location_key(prefecture, city, None)
            return DerivedSegments(
                prefecture=prefecture,
                city=city,
                town=None,
                base_town=None,
                location_label=city,
                location_key=location_key,
                base_location_key=location_key,
            )

        return DerivedSegments(
            prefecture=prefecture,
            city=city,
            town=town,
            base_town=base_town,
            location_label=city + (town or base_town or ""),
            location_key=make_location_key(prefecture, city, town),
            base_location_key=make_location_key(prefecture, city, base_town) if base_town else None,
            town_source=town_source,
        )

    @staticmethod
    def _resolve_town(record: VisitRecord, remainder: Optional[str]):
        explicit = prepare_address_text(record.patient_town)
        if explicit:
            return standardize_town_label(explicit) or explicit, SOURCE_EXPLICIT
        if remainder:
            result = classify_chome(remainder)
            if result is not None:
                return result.label, result.source
        return None, None
