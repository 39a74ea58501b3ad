"""
市区町村の最長一致マッチャー

「都道府県+市区町村」と「市区町村」の両方を候補にし、長い順に前方一致を試す。
大阪市中央区 のような区を持つ市は、大阪市 より先に照合される。
"""

import logging
from collections import namedtuple
from typing import Iterable, List, Optional

from address_normalizer import remove_whitespace
from models import GazetteerMunicipalityEntry

logger = logging.getLogger(__name__)

MunicipalityMatch = namedtuple('MunicipalityMatch', ['prefecture', 'city', 'remainder'])

_Candidate = namedtuple('_Candidate', ['pattern', 'prefecture', 'city'])


class MunicipalityMatcher:
    def __init__(self, municipalities: Iterable[GazetteerMunicipalityEntry]):
        """
        Args:
            municipalities: 市区町村マスタ
        """
        candidates: List[_Candidate] = []
        for entry in municipalities:
            prefecture = remove_whitespace(entry.prefecture)
            city = remove_whitespace(entry.city)
            if not city:
                continue
            candidates.append(_Candidate(f"{prefecture}{city}", prefecture, city))
            candidates.append(_Candidate(city, prefecture, city))

        # 長い候補ほど具体的な市区町村
        self._candidates = sorted(candidates, key=lambda candidate: -len(candidate.pattern))
        logger.debug(f"市区町村マッチャーを構築しました: {len(self._candidates)}候補")

    def __len__(self) -> int:
        return len(self._candidates)

    def match_prefix(self, address: Optional[str]) -> Optional[MunicipalityMatch]:
        """
        正規化済み住所の先頭にある市区町村を探す

        Args:
            address: 空白除去・数字正規化済みの住所

        Returns:
            MunicipalityMatch(prefecture, city, remainder)。見つからなければ None
        """
        if not address:
            return None
        for candidate in self._candidates:
            if address.startswith(candidate.pattern):
                return MunicipalityMatch(
                    candidate.prefecture,
                    candidate.city,
                    address[len(candidate.pattern):],
                )
        return None
