"""clinic_geo_etl のテスト（一時ディレクトリのJSONとSQLiteで実行）"""
import json
import sqlite3

import pytest

from clinic_geo_etl import ClinicGeoETL, build_parser, main
from gazetteer_loader import GazetteerLoader
from record_filter import RecordFilter

TOWNS = [
    {"prefecture": "大阪府", "city": "大阪市西区", "town": "北堀江二丁目", "latitude": 34.675, "longitude": 135.493},
    {"prefecture": "大阪府", "city": "大阪市西区", "town": "北堀江三丁目", "latitude": 34.680, "longitude": 135.496},
    {"prefecture": "大阪府", "city": "大阪市西区", "latitude": 34.0, "longitude": 135.0},
]

MUNICIPALITIES = [
    {"prefecture": "大阪府", "city": "大阪市西区", "latitude": 34.676, "longitude": 135.486},
    {"prefecture": "大阪府", "city": "堺市美原区", "latitude": 34.540, "longitude": 135.560},
]

RECORDS = [
    {"department": "内科", "reservationMonth": "2024-05", "patientAge": 34,
     "patientAddress": "大阪府大阪市西区北堀江2丁目1-11"},
    {"department": "小児科", "reservationMonth": "2024-05", "patientAge": 6,
     "patientAddress": "大阪市西区北堀江２－３－４"},
    {"department": "内科", "reservationMonth": "2024-06", "patientAge": None,
     "patientPrefecture": "大阪府", "patientCity": "堺市美原区", "patientAddress": None},
    {"department": "内科", "reservationMonth": "2024-06", "patientAge": 71,
     "patientAddress": "住所不明"},
]


def _write(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)


@pytest.fixture
def paths(tmp_path):
    return {
        "records": _write(tmp_path / "records.json", RECORDS),
        "towns": _write(tmp_path / "towns.json", TOWNS),
        "municipalities": _write(tmp_path / "municipalities.json", MUNICIPALITIES),
        "output": str(tmp_path / "out" / "clinic_geo.db"),
    }


def _etl(paths):
    loader = GazetteerLoader(paths["towns"], paths["municipalities"])
    return ClinicGeoETL(paths["records"], paths["output"], loader)


def test_run_etl_writes_points_and_coverage(paths):
    result = _etl(paths).run_etl(show_progress=False)

    assert result.coverage.filtered_total == 4
    assert result.coverage.matched_total == 3
    assert result.coverage.missing_location_count == 1
    assert result.coverage.coverage_percentage == 75.0

    conn = sqlite3.connect(paths["output"])
    try:
        rows = conn.execute(
            "SELECT location_label, total, match_level, department_histogram FROM resolved_map_points ORDER BY total DESC"
        ).fetchall()
        coverage = conn.execute(
            "SELECT filtered_total, matched_total, missing_location_count, unmatched_count, coverage_percentage FROM coverage_summary"
        ).fetchall()
    finally:
        conn.close()

    assert rows[0][0] == "大阪市西区北堀江二丁目"
    assert rows[0][1] == 2
    assert rows[0][2] == "town"
    assert json.loads(rows[0][3]) == {"内科": 1, "小児科": 1}
    assert rows[1][:3] == ("堺市美原区", 1, "city")
    assert coverage == [(4, 3, 1, 0, 75.0)]


def test_run_etl_with_filter(paths):
    result = _etl(paths).run_etl(RecordFilter(month="2024-06"), show_progress=False)
    assert result.coverage.filtered_total == 2
    assert result.coverage.matched_total == 1


def test_run_etl_without_gazetteer_counts_unmatched(paths, tmp_path):
    paths["towns"] = str(tmp_path / "missing.json")
    result = _etl(paths).run_etl(show_progress=False)

    assert result.points == []
    assert result.coverage.unmatched_count == 3
    assert result.coverage.missing_location_count == 1
    assert result.coverage.coverage_percentage == 0


def test_runs_append_to_same_database(paths):
    _etl(paths).run_etl(show_progress=False)
    _etl(paths).run_etl(show_progress=False)

    conn = sqlite3.connect(paths["output"])
    try:
        runs = conn.execute("SELECT COUNT(*) FROM coverage_summary").fetchone()[0]
    finally:
        conn.close()
    assert runs == 2


def test_main(paths):
    main([
        "--records", paths["records"],
        "--towns", paths["towns"],
        "--municipalities", paths["municipalities"],
        "--output", paths["output"],
        "--department", "内科",
        "--no-progress",
    ])
    conn = sqlite3.connect(paths["output"])
    try:
        filtered_total, = conn.execute("SELECT filtered_total FROM coverage_summary").fetchone()
    finally:
        conn.close()
    assert filtered_total == 3


def test_parser_rejects_unknown_age_band():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--age-band", "90+"])
