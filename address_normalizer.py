"""
住所正規化

全角数字・ダッシュ類の統一と、丁目表記（算用数字 → 漢数字）の正規化を行う。
町丁目マスタの町名は漢数字の「〇丁目」表記なので、レコード側もこの形にそろえてから照合する。
"""

import re
from collections import namedtuple
from typing import Optional

import jaconv

KANJI_DIGITS = ("零", "一", "二", "三", "四", "五", "六", "七", "八", "九")

DASH_PATTERN = re.compile(r'[－―ーｰ‐]')
WHITESPACE_PATTERN = re.compile(r'\s+')
TRAILING_DIGITS_PATTERN = re.compile(r'(\d+)$')
HYPHEN_CHOME_PATTERN = re.compile(r'^(\D+?)(\d+)-')
SUFFIX_CHOME_PATTERN = re.compile(r'^(\D+?)(\d+)$')
CHOME_SUFFIX_PATTERN = re.compile(r'([〇零一二三四五六七八九十百\d]+丁目)$')

CHOME = "丁目"

# 丁目表記の判定結果。source は explicit 以外の推定がどの手掛かりによるものかを示す
ChomeResult = namedtuple('ChomeResult', ['label', 'source'])

SOURCE_CHOME_TOKEN = "chome_token"
SOURCE_HYPHEN = "hyphen"
SOURCE_TRAILING_DIGITS = "trailing_digits"


def normalize_digits(value: str) -> str:
    """全角数字（０-９）を半角に変換する。それ以外の文字はそのまま"""
    return jaconv.z2h(value, kana=False, ascii=False, digit=True)


def normalize_dashes(value: str) -> str:
    """ダッシュ類（－―ーｰ‐）を半角ハイフンに統一する"""
    return DASH_PATTERN.sub("-", value)


def remove_whitespace(value: str) -> str:
    return WHITESPACE_PATTERN.sub("", value)


def number_to_kanji(value: int) -> str:
    """
    1〜99 を漢数字に変換

    Args:
        value: 数値

    Returns:
        漢数字（例: 3 → 三, 10 → 十, 13 → 十三, 21 → 二十一）。範囲外は算用数字のまま
    """
    if value <= 0 or value >= 100:
        return str(value)
    if value < 10:
        return KANJI_DIGITS[value]
    if value == 10:
        return "十"
    if value < 20:
        return "十" + KANJI_DIGITS[value - 10]

    tens, ones = divmod(value, 10)
    tens_part = KANJI_DIGITS[tens] + "十"
    return tens_part if ones == 0 else tens_part + KANJI_DIGITS[ones]


def _to_chome(base: str, digits: str) -> str:
    return f"{base}{number_to_kanji(int(digits))}{CHOME}"


def classify_chome(value: str) -> Optional[ChomeResult]:
    """
    丁目表記を漢数字の「〇丁目」で終わる形に正規化し、推定の根拠と一緒に返す

    1. 「丁目」を含む場合はその直後で切り、直前の算用数字を漢数字にする
    2. 「町名1-」の形なら先頭の数字を丁目とみなす
    3. 「町名1」で終わる形なら末尾の数字を丁目とみなす

    2, 3 は番地を丁目と取り違えることがあるため source で区別する。

    Args:
        value: 数字・ダッシュ正規化済みの文字列

    Returns:
        ChomeResult。丁目の手掛かりがなければ None
    """
    if not value:
        return None

    if CHOME in value:
        head = value[:value.index(CHOME)]
        match = TRAILING_DIGITS_PATTERN.search(head)
        if match:
            head = head[:match.start()] + number_to_kanji(int(match.group(1)))
        if not head:
            return None
        return ChomeResult(head + CHOME, SOURCE_CHOME_TOKEN)

    match = HYPHEN_CHOME_PATTERN.match(value)
    if match:
        return ChomeResult(_to_chome(match.group(1), match.group(2)), SOURCE_HYPHEN)

    match = SUFFIX_CHOME_PATTERN.match(value)
    if match:
        return ChomeResult(_to_chome(match.group(1), match.group(2)), SOURCE_TRAILING_DIGITS)

    return None


def normalize_chome(value: str) -> Optional[str]:
    """丁目表記を正規化する。丁目の手掛かりがなければ None"""
    result = classify_chome(value)
    return result.label if result else None


def prepare_address_text(value: Optional[str]) -> Optional[str]:
    """空白除去・数字・ダッシュの正規化をまとめて行う"""
    if value is None:
        return None
    normalized = remove_whitespace(value)
    if not normalized:
        return None
    return normalize_dashes(normalize_digits(normalized))


def standardize_town_label(value: Optional[str]) -> Optional[str]:
    """
    町名を照合用の形（例: 北堀江二丁目）にそろえる

    Args:
        value: 町名または住所の残り部分（例: 北堀江２丁目, 北堀江2-1-11）

    Returns:
        正規化した町名。丁目の手掛かりがなければ None
    """
    prepared = prepare_address_text(value)
    if prepared is None:
        return None
    return normalize_chome(prepared)


def remove_chome_suffix(value: Optional[str]) -> Optional[str]:
    """
    末尾の「〇丁目」を取り除いた町名（ベース町名）を返す

    Returns:
        ベース町名。何も残らなければ None
    """
    if not value:
        return None
    normalized = remove_whitespace(value)
    if not normalized:
        return None
    removed = CHOME_SUFFIX_PATTERN.sub("", normalized)
    return removed if removed else None
