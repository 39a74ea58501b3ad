"""
住所マスタ（町丁目・市区町村）の読み込み

セッションにつき一度だけ読み込み、以降は同じ GazetteerIndex を返す。
読み込みに失敗した場合は is_ready が False のまま残り、load() を再実行できる。
"""

import json
import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar

import requests

from config import HTTP_TIMEOUT, MUNICIPALITY_GAZETTEER_PATH, TOWN_GAZETTEER_PATH
from gazetteer_index import GazetteerIndex
from models import GazetteerMunicipalityEntry, GazetteerTownEntry

logger = logging.getLogger(__name__)

T = TypeVar('T')


class GazetteerLoadError(Exception):
    """住所マスタを取得できなかった（再試行可能）"""


def fetch_json(location: str, timeout: float = HTTP_TIMEOUT) -> Any:
    """
    ローカルファイルまたは http(s) URL から JSON を取得

    Args:
        location: パスまたはURL
        timeout: HTTPタイムアウト（秒）

    Returns:
        デコードしたJSON
    """
    try:
        if location.startswith(('http://', 'https://')):
            response = requests.get(location, timeout=timeout)
            response.raise_for_status()
            return response.json()
        with open(Path(location), 'r', encoding='utf-8') as f:
            return json.load(f)
    except (requests.RequestException, OSError, ValueError) as e:
        raise GazetteerLoadError(f"住所マスタを読み込めませんでした ({location}): {e}") from e


def _require_text(row: dict, name: str) -> str:
    value = row.get(name)
    if not isinstance(value, str) or value.strip() == '':
        raise ValueError(f"{name} がありません")
    return value


def _require_coordinate(row: dict, name: str) -> float:
    value = row.get(name)
    if value is None or isinstance(value, bool):
        raise ValueError(f"{name} がありません")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} が数値ではありません: {value}")
    return number


def _parse_town_row(row: dict) -> GazetteerTownEntry:
    return GazetteerTownEntry(
        prefecture=_require_text(row, 'prefecture'),
        city=_require_text(row, 'city'),
        town=_require_text(row, 'town'),
        latitude=_require_coordinate(row, 'latitude'),
        longitude=_require_coordinate(row, 'longitude'),
    )


def _parse_municipality_row(row: dict) -> GazetteerMunicipalityEntry:
    return GazetteerMunicipalityEntry(
        prefecture=_require_text(row, 'prefecture'),
        city=_require_text(row, 'city'),
        latitude=_require_coordinate(row, 'latitude'),
        longitude=_require_coordinate(row, 'longitude'),
    )


def _parse_rows(rows: Any, parser: Callable[[dict], T], label: str) -> List[T]:
    if not isinstance(rows, list):
        raise GazetteerLoadError(f"{label}がJSON配列ではありません")

    entries = []
    skipped = 0
    for position, row in enumerate(rows):
        try:
            if not isinstance(row, dict):
                raise ValueError("オブジェクトではありません")
            entries.append(parser(row))
        except (TypeError, ValueError) as e:
            skipped += 1
            logger.warning(f"{label}の不正な行をスキップしました (#{position}): {e}")

    logger.info(f"{label}を読み込みました: {len(entries)}件 (スキップ: {skipped}件)")
    return entries


def parse_town_rows(rows: Any) -> List[GazetteerTownEntry]:
    return _parse_rows(rows, _parse_town_row, "町丁目マスタ")


def parse_municipality_rows(rows: Any) -> List[GazetteerMunicipalityEntry]:
    return _parse_rows(rows, _parse_municipality_row, "市区町村マスタ")


class GazetteerLoader:
    def __init__(self, town_source: str = TOWN_GAZETTEER_PATH,
                 municipality_source: str = MUNICIPALITY_GAZETTEER_PATH,
                 timeout: float = HTTP_TIMEOUT):
        """
        住所マスタ読み込みクラス

        Args:
            town_source: 町丁目マスタのパスまたはURL
            municipality_source: 市区町村マスタのパスまたはURL
            timeout: HTTPタイムアウト（秒）
        """
        self.town_source = town_source
        self.municipality_source = municipality_source
        self.timeout = timeout
        self.last_error: Optional[GazetteerLoadError] = None
        self._index: Optional[GazetteerIndex] = None
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._index is not None

    @property
    def index(self) -> Optional[GazetteerIndex]:
        """読み込み済みならインデックス、未読み込みなら None"""
        return self._index

    def load(self) -> GazetteerIndex:
        """
        住所マスタを読み込んでインデックスを構築（2回目以降は既存のものを返す）

        Raises:
            GazetteerLoadError: いずれかのマスタを取得できなかった場合
        """
        with self._lock:
            if self._index is not None:
                return self._index

            try:
                towns = parse_town_rows(fetch_json(self.town_source, self.timeout))
                municipalities = parse_municipality_rows(fetch_json(self.municipality_source, self.timeout))
            except GazetteerLoadError as e:
                self.last_error = e
                logger.error(f"住所マスタの読み込みに失敗しました: {e}")
                raise

            self._index = GazetteerIndex.build(towns, municipalities)
            self.last_error = None
            return self._index

    def load_async(self, executor: Optional[ThreadPoolExecutor] = None) -> Future:
        """
        バックグラウンドで load() を実行

        Args:
            executor: 使用するExecutor。省略時は使い捨てのスレッドを1本使う

        Returns:
            GazetteerIndex を返す Future
        """
        if executor is not None:
            return executor.submit(self.load)

        own_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gazetteer")
        future = own_executor.submit(self.load)
        own_executor.shutdown(wait=False)
        return future
