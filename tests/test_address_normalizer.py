"""
address_normalizer のテスト。
丁目表記は漢数字の「〇丁目」にそろい、正規化済みの値は変わらないことを固定する。
"""
import pytest

from address_normalizer import (
    SOURCE_CHOME_TOKEN,
    SOURCE_HYPHEN,
    SOURCE_TRAILING_DIGITS,
    classify_chome,
    normalize_chome,
    normalize_dashes,
    normalize_digits,
    number_to_kanji,
    prepare_address_text,
    remove_chome_suffix,
    standardize_town_label,
)


# --- normalize_digits / normalize_dashes ---


def test_normalize_digits_full_width():
    assert normalize_digits("０１２３４５６７８９") == "0123456789"


def test_normalize_digits_identity_otherwise():
    """数字以外の全角文字やカナはそのまま。"""
    value = "北堀江ＡＢＣ　カタカナ2-1"
    assert normalize_digits(value) == value


def test_normalize_dashes_all_glyphs():
    assert normalize_dashes("1－2―3ー4ｰ5‐6") == "1-2-3-4-5-6"


# --- number_to_kanji ---


@pytest.mark.parametrize("value, expected", [
    (1, "一"),
    (3, "三"),
    (10, "十"),
    (13, "十三"),
    (20, "二十"),
    (21, "二十一"),
    (99, "九十九"),
])
def test_number_to_kanji(value, expected):
    assert number_to_kanji(value) == expected


def test_number_to_kanji_out_of_range_keeps_arabic():
    assert number_to_kanji(0) == "0"
    assert number_to_kanji(100) == "100"


# --- normalize_chome ---


def test_normalize_chome_explicit_token_truncates_after_chome():
    assert normalize_chome("北堀江2丁目1-11") == "北堀江二丁目"


def test_normalize_chome_hyphen_pattern():
    assert normalize_chome("北堀江2-1-11") == "北堀江二丁目"


def test_normalize_chome_trailing_digits():
    assert normalize_chome("難波12") == "難波十二丁目"


def test_normalize_chome_without_signal_is_none():
    assert normalize_chome("新千里東町") is None
    assert normalize_chome("") is None


@pytest.mark.parametrize("value", ["北堀江二丁目", "難波十二丁目", "北堀江二丁目1-11"])
def test_normalize_chome_idempotent(value):
    once = normalize_chome(value)
    assert normalize_chome(once) == once


def test_classify_chome_reports_source():
    assert classify_chome("北堀江2丁目").source == SOURCE_CHOME_TOKEN
    assert classify_chome("北堀江2-1").source == SOURCE_HYPHEN
    assert classify_chome("北堀江2").source == SOURCE_TRAILING_DIGITS


# --- standardize_town_label / remove_chome_suffix ---


def test_standardize_town_label_full_width_and_spaces():
    assert standardize_town_label(" 北堀江　２丁目 ") == "北堀江二丁目"


def test_standardize_town_label_full_width_dash():
    assert standardize_town_label("北堀江２－１－１１") == "北堀江二丁目"


def test_standardize_town_label_none_and_empty():
    assert standardize_town_label(None) is None
    assert standardize_town_label("   ") is None


def test_remove_chome_suffix_after_standardize():
    assert remove_chome_suffix(standardize_town_label("北堀江2丁目")) == "北堀江"


def test_remove_chome_suffix_without_chome():
    assert remove_chome_suffix("新千里東町") == "新千里東町"


def test_remove_chome_suffix_nothing_left():
    assert remove_chome_suffix("二丁目") is None
    assert remove_chome_suffix(None) is None


def test_prepare_address_text():
    assert prepare_address_text("大阪府 大阪市西区北堀江２ー１") == "大阪府大阪市西区北堀江2-1"
    assert prepare_address_text("  ") is None
