"""
地点キーの生成

(都道府県, 市区町村, 町名) を区切り文字で連結する。同じ組からは常に同じキーになる。
"""

from typing import Optional

from address_normalizer import remove_whitespace
from config import KEY_SEPARATOR


def make_location_key(prefecture: Optional[str], city: Optional[str], town: Optional[str]) -> Optional[str]:
    """
    Args:
        prefecture: 都道府県（不明なら None）
        city: 市区町村
        town: 町名（市区町村単位なら None）

    Returns:
        地点キー。市区町村がなければ None
    """
    if not city:
        return None
    parts = (prefecture or "", city, town or "")
    return KEY_SEPARATOR.join(remove_whitespace(part) for part in parts)


def make_municipality_key(prefecture: Optional[str], city: Optional[str]) -> str:
    return KEY_SEPARATOR.join(remove_whitespace(part or "") for part in (prefecture, city))


def blank_prefecture(key: Optional[str]) -> Optional[str]:
    """地点キーの都道府県部分を空にしたキーを返す"""
    if not key:
        return None
    _, rest = key.split(KEY_SEPARATOR, 1)
    return KEY_SEPARATOR + rest
