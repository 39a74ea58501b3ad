"""
gazetteer_loader のテスト。
不正な行はスキップして残りを読み込み、取得失敗は再試行できることを固定する。
"""
import json

import pytest
import requests

import gazetteer_loader
from gazetteer_loader import (
    GazetteerLoader,
    GazetteerLoadError,
    fetch_json,
    parse_municipality_rows,
    parse_town_rows,
)

TOWN_ROWS = [
    {"prefecture": "大阪府", "city": "大阪市西区", "town": "北堀江二丁目", "latitude": 34.675, "longitude": 135.493},
    {"prefecture": "大阪府", "city": "大阪市西区", "town": "", "latitude": 34.0, "longitude": 135.0},
    {"prefecture": "大阪府", "city": "大阪市西区", "town": "北堀江三丁目", "latitude": None, "longitude": 135.0},
    {"prefecture": "大阪府", "city": "大阪市西区", "town": "北堀江四丁目", "latitude": "abc", "longitude": 135.0},
    "not an object",
]

MUNICIPALITY_ROWS = [
    {"prefecture": "大阪府", "city": "大阪市西区", "latitude": 34.676, "longitude": 135.486},
    {"prefecture": "大阪府", "latitude": 34.5, "longitude": 135.5},
]


def _write(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)


@pytest.fixture
def sources(tmp_path):
    towns = _write(tmp_path / "towns.json", TOWN_ROWS)
    municipalities = _write(tmp_path / "municipalities.json", MUNICIPALITY_ROWS)
    return towns, municipalities


def test_malformed_rows_are_skipped():
    entries = parse_town_rows(TOWN_ROWS)
    assert [entry.town for entry in entries] == ["北堀江二丁目"]


def test_malformed_municipality_rows_are_skipped():
    entries = parse_municipality_rows(MUNICIPALITY_ROWS)
    assert len(entries) == 1
    assert entries[0].city == "大阪市西区"


def test_numeric_strings_are_accepted():
    entries = parse_municipality_rows([{"prefecture": "大阪府", "city": "豊中市", "latitude": "34.78", "longitude": "135.46"}])
    assert entries[0].latitude == 34.78


def test_non_array_is_load_error():
    with pytest.raises(GazetteerLoadError):
        parse_town_rows({"prefecture": "大阪府"})


def test_load_builds_index(sources):
    loader = GazetteerLoader(*sources)
    assert not loader.is_ready
    assert loader.index is None

    index = loader.load()
    assert loader.is_ready
    assert loader.index is index
    assert index.exact_town("大阪府|大阪市西区|北堀江二丁目") is not None


def test_load_is_idempotent(sources):
    loader = GazetteerLoader(*sources)
    assert loader.load() is loader.load()


def test_missing_file_is_retryable(tmp_path, sources):
    towns, municipalities = sources
    missing = str(tmp_path / "missing.json")
    loader = GazetteerLoader(missing, municipalities)

    with pytest.raises(GazetteerLoadError):
        loader.load()
    assert not loader.is_ready
    assert isinstance(loader.last_error, GazetteerLoadError)

    # ファイルが用意されれば同じローダーで再試行できる
    loader.town_source = towns
    loader.load()
    assert loader.is_ready
    assert loader.last_error is None


def test_invalid_json_is_load_error(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(GazetteerLoadError):
        fetch_json(str(path))


def test_load_async(sources):
    loader = GazetteerLoader(*sources)
    future = loader.load_async()
    index = future.result(timeout=10)
    assert loader.is_ready
    assert loader.index is index


class _FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self._payload


def test_fetch_json_from_url(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return _FakeResponse(MUNICIPALITY_ROWS)

    monkeypatch.setattr(gazetteer_loader.requests, "get", fake_get)
    data = fetch_json("https://example.com/data/municipalities.json", timeout=5)
    assert data == MUNICIPALITY_ROWS
    assert calls == [("https://example.com/data/municipalities.json", 5)]


def test_fetch_json_http_error(monkeypatch):
    monkeypatch.setattr(gazetteer_loader.requests, "get", lambda url, timeout: _FakeResponse(None, 404))
    with pytest.raises(GazetteerLoadError):
        fetch_json("https://example.com/data/osaka_towns.json")


def test_fetch_json_connection_error(monkeypatch):
    def fake_get(url, timeout):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(gazetteer_loader.requests, "get", fake_get)
    with pytest.raises(GazetteerLoadError):
        fetch_json("http://localhost/data/osaka_towns.json")
