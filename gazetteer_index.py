"""
町丁目マスタ・市区町村マスタの照合インデックス

一度構築したら変更しない。複数の集計処理から読み取り専用で共有できる。
"""

import logging
from collections import namedtuple
from dataclasses import asdict
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import pandas as pd

from address_normalizer import (
    prepare_address_text,
    remove_chome_suffix,
    remove_whitespace,
    standardize_town_label,
)
from location_keys import blank_prefecture, make_location_key, make_municipality_key
from models import GazetteerMunicipalityEntry, GazetteerTownEntry
from municipality_matcher import MunicipalityMatcher

logger = logging.getLogger(__name__)

TownCoordinate = namedtuple('TownCoordinate', ['latitude', 'longitude', 'display_town'])

TOWN_COLUMNS = ['prefecture', 'city', 'town', 'latitude', 'longitude']


class GazetteerIndex:
    def __init__(
        self,
        by_exact_town: Mapping[str, TownCoordinate],
        by_aggregated_base_town: Mapping[str, TownCoordinate],
        by_municipality_pref_city: Mapping[str, GazetteerMunicipalityEntry],
        by_municipality_city_only: Mapping[str, GazetteerMunicipalityEntry],
        municipality_matcher: MunicipalityMatcher,
    ):
        self.by_exact_town = MappingProxyType(dict(by_exact_town))
        self.by_aggregated_base_town = MappingProxyType(dict(by_aggregated_base_town))
        self.by_municipality_pref_city = MappingProxyType(dict(by_municipality_pref_city))
        self.by_municipality_city_only = MappingProxyType(dict(by_municipality_city_only))
        self.municipality_matcher = municipality_matcher

    @classmethod
    def build(
        cls,
        towns: Iterable[GazetteerTownEntry],
        municipalities: Iterable[GazetteerMunicipalityEntry],
    ) -> 'GazetteerIndex':
        """
        マスタからインデックスを構築

        町名はレコード側と同じ丁目正規化を通してからキーにする。
        都道府県を空にした別名キー（|市区町村|町名）も最初に現れた行で登録する。

        Args:
            towns: 町丁目マスタ
            municipalities: 市区町村マスタ

        Returns:
            GazetteerIndex
        """
        municipalities = list(municipalities)
        df = pd.DataFrame([asdict(entry) for entry in towns], columns=TOWN_COLUMNS)

        by_exact_town = {}
        by_aggregated_base_town = {}

        if not df.empty:
            df['prefecture'] = df['prefecture'].map(remove_whitespace)
            df['city'] = df['city'].map(remove_whitespace)
            df['norm_town'] = df['town'].map(
                lambda town: standardize_town_label(town) or prepare_address_text(town) or ''
            )
            # 町名が空の行は市区町村単位のキーと衝突する
            df = df[(df['norm_town'] != '') & (df['city'] != '')].copy()
            df['base_town'] = df['norm_town'].map(remove_chome_suffix)

        if not df.empty:
            for row in df.itertuples(index=False):
                key = make_location_key(row.prefecture, row.city, row.norm_town)
                coordinate = TownCoordinate(float(row.latitude), float(row.longitude), row.norm_town)
                by_exact_town[key] = coordinate
                by_exact_town.setdefault(blank_prefecture(key), coordinate)

            # ベース町名ごとの重心
            centroids = (
                df.dropna(subset=['base_town'])
                .groupby(['prefecture', 'city', 'base_town'], sort=False)[['latitude', 'longitude']]
                .mean()
            )
            for (prefecture, city, base_town), row in centroids.iterrows():
                key = make_location_key(prefecture, city, base_town)
                coordinate = TownCoordinate(float(row['latitude']), float(row['longitude']), base_town)
                by_aggregated_base_town[key] = coordinate
                by_aggregated_base_town.setdefault(blank_prefecture(key), coordinate)

        by_municipality_pref_city = {}
        by_municipality_city_only = {}
        for entry in municipalities:
            by_municipality_pref_city[make_municipality_key(entry.prefecture, entry.city)] = entry
            by_municipality_city_only.setdefault(remove_whitespace(entry.city), entry)

        index = cls(
            by_exact_town,
            by_aggregated_base_town,
            by_municipality_pref_city,
            by_municipality_city_only,
            MunicipalityMatcher(municipalities),
        )
        logger.info(
            f"照合インデックスを構築しました - 町丁目: {len(df)}件, "
            f"ベース町名: {len(by_aggregated_base_town)}キー, 市区町村: {len(municipalities)}件"
        )
        return index

    @classmethod
    def empty(cls) -> 'GazetteerIndex':
        return cls.build([], [])

    def exact_town(self, key: Optional[str]) -> Optional[TownCoordinate]:
        if not key:
            return None
        return self.by_exact_town.get(key)

    def aggregated_base_town(self, key: Optional[str]) -> Optional[TownCoordinate]:
        if not key:
            return None
        return self.by_aggregated_base_town.get(key)

    def municipality(self, prefecture: Optional[str], city: Optional[str]) -> Optional[GazetteerMunicipalityEntry]:
        if not city:
            return None
        return self.by_municipality_pref_city.get(make_municipality_key(prefecture, city))

    def municipality_by_city(self, city: Optional[str]) -> Optional[GazetteerMunicipalityEntry]:
        """都道府県が不明なときだけ使う。同名の市区町村は最初に現れたもの"""
        if not city:
            return None
        return self.by_municipality_city_only.get(remove_whitespace(city))
