#!/usr/bin/env python3
"""
患者住所マップ集計 ETL
受診レコードの住所を町丁目・市区町村マスタで座標に変換し、地点ごとの集計とカバレッジをSQLiteに出力する
"""

import argparse
import json
import logging
import os
import sqlite3
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from config import (
    AGE_BAND_IDS,
    HTTP_TIMEOUT,
    MUNICIPALITY_GAZETTEER_PATH,
    OUTPUT_DB_PATH,
    RECORDS_PATH,
    TOWN_GAZETTEER_PATH,
)
from gazetteer_loader import GazetteerLoader, GazetteerLoadError
from geo_pipeline import PipelineResult, run_pipeline
from models import VisitRecord
from record_filter import RecordFilter

logger = logging.getLogger(__name__)

POINT_COLUMNS = [
    'id', 'prefecture', 'city', 'town', 'base_town', 'location_label', 'town_source',
    'total', 'latitude', 'longitude', 'matched_gazetteer_name', 'match_level',
    'dominant_age_band', 'age_band_histogram', 'department_histogram',
]


class ClinicGeoETL:
    def __init__(self, records_path: str, output_db_path: str, loader: GazetteerLoader):
        """
        患者住所マップ集計ETLクラス

        Args:
            records_path: 受診レコードJSONのパス
            output_db_path: 出力先データベースのパス
            loader: 住所マスタ読み込み
        """
        self.records_path = records_path
        self.output_db_path = output_db_path
        self.loader = loader
        self.connection = None

    def connect_db(self):
        """出力データベースに接続"""
        try:
            output_dir = os.path.dirname(self.output_db_path)
            if output_dir:
                os.makedirs(output_dir, exist_ok=True)
            self.connection = sqlite3.connect(self.output_db_path)
            logger.info(f"出力DB接続: {self.output_db_path}")
        except Exception as e:
            logger.error(f"データベース接続エラー: {e}")
            raise

    def close_db(self):
        """データベース接続を閉じる"""
        if self.connection:
            self.connection.close()
            self.connection = None
            logger.info("出力DB接続を閉じました")

    def create_output_tables(self):
        """出力テーブルを作成"""
        cursor = self.connection.cursor()

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS resolved_map_points (
            run_id TEXT,
            id TEXT,
            prefecture TEXT,
            city TEXT,
            town TEXT,
            base_town TEXT,
            location_label TEXT,
            town_source TEXT,
            total INTEGER,
            latitude REAL,
            longitude REAL,
            matched_gazetteer_name TEXT,
            match_level TEXT,
            dominant_age_band TEXT,
            age_band_histogram TEXT,
            department_histogram TEXT
        )
        """)

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS coverage_summary (
            run_id TEXT PRIMARY KEY,
            run_at TIMESTAMP,
            filter_json TEXT,
            filtered_total INTEGER,
            matched_total INTEGER,
            missing_location_count INTEGER,
            unmatched_count INTEGER,
            unresolved_total INTEGER,
            coverage_percentage REAL
        )
        """)

        self.connection.commit()
        logger.info("出力テーブルを作成しました")

    def load_records(self) -> List[VisitRecord]:
        """受診レコードを読み込み"""
        df = pd.read_json(self.records_path, orient='records', dtype=False, convert_dates=False)
        records = [VisitRecord.from_dict(row) for row in df.to_dict(orient='records')]
        logger.info(f"受診レコードを読み込みました: {len(records)}件")
        return records

    def save_result(self, run_id: str, result: PipelineResult, record_filter: RecordFilter):
        """集計結果を保存"""
        cursor = self.connection.cursor()

        rows = []
        for point in result.points:
            data = point.to_dict()
            rows.append(tuple([run_id] + [data[column] for column in POINT_COLUMNS]))

        if rows:
            placeholders = ', '.join(['?'] * (len(POINT_COLUMNS) + 1))
            cursor.executemany(
                f"INSERT INTO resolved_map_points (run_id, {', '.join(POINT_COLUMNS)}) VALUES ({placeholders})",
                rows
            )

        coverage = result.coverage.to_dict()
        cursor.execute(
            """
            INSERT INTO coverage_summary (
                run_id, run_at, filter_json, filtered_total, matched_total,
                missing_location_count, unmatched_count, unresolved_total, coverage_percentage
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                run_id,
                datetime.now().isoformat(),
                json.dumps(asdict(record_filter), ensure_ascii=False),
                coverage['filtered_total'],
                coverage['matched_total'],
                coverage['missing_location_count'],
                coverage['unmatched_count'],
                coverage['unresolved_total'],
                coverage['coverage_percentage'],
            )
        )
        self.connection.commit()
        logger.info(f"地図ポイントを保存しました: {len(rows)}件 (run_id: {run_id})")

    def create_indexes(self):
        """検索用インデックスを作成"""
        cursor = self.connection.cursor()

        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_points_run_id ON resolved_map_points(run_id)",
            "CREATE INDEX IF NOT EXISTS idx_points_location_label ON resolved_map_points(location_label)",
            "CREATE INDEX IF NOT EXISTS idx_points_city ON resolved_map_points(city)",
            "CREATE INDEX IF NOT EXISTS idx_points_match_level ON resolved_map_points(match_level)",
            "CREATE INDEX IF NOT EXISTS idx_points_lat_lng ON resolved_map_points(latitude, longitude)",
        ]

        for index_sql in indexes:
            cursor.execute(index_sql)

        self.connection.commit()
        logger.info("検索用インデックスを作成しました")

    def get_statistics(self, run_id: str) -> Dict[str, Any]:
        """処理統計を取得"""
        cursor = self.connection.cursor()

        cursor.execute("""
        SELECT match_level, COUNT(*), SUM(total) FROM resolved_map_points
        WHERE run_id = ?
        GROUP BY match_level
        """, (run_id,))
        by_level = {level: {'points': points, 'records': records} for level, points, records in cursor.fetchall()}

        cursor.execute("""
        SELECT filtered_total, matched_total, missing_location_count, unmatched_count, coverage_percentage
        FROM coverage_summary WHERE run_id = ?
        """, (run_id,))
        filtered_total, matched_total, missing, unmatched, coverage = cursor.fetchone()

        logger.info("=" * 60)
        logger.info("患者住所マップ集計統計:")
        logger.info(f"  対象レコード数: {filtered_total:,}件")
        logger.info(f"  座標付与済み: {matched_total:,}件")
        for level, stats in sorted(by_level.items()):
            logger.info(f"    {level}: {stats['points']:,}地点 / {stats['records']:,}件")
        logger.info(f"  住所不明: {missing:,}件")
        logger.info(f"  未照合: {unmatched:,}件")
        logger.info(f"  カバレッジ: {coverage:.1f}%")
        logger.info("=" * 60)

        return {
            'filtered_total': filtered_total,
            'matched_total': matched_total,
            'missing_location_count': missing,
            'unmatched_count': unmatched,
            'coverage_percentage': coverage,
            'by_match_level': by_level,
        }

    def show_sample_results(self, run_id: str, limit: int = 3):
        """サンプル結果を表示"""
        cursor = self.connection.cursor()
        cursor.execute("""
        SELECT location_label, total, latitude, longitude, matched_gazetteer_name,
               match_level, dominant_age_band, department_histogram
        FROM resolved_map_points
        WHERE run_id = ?
        ORDER BY total DESC
        LIMIT ?
        """, (run_id, limit))

        results = cursor.fetchall()
        logger.info(f"集計結果サンプル（{limit}件）:")
        for row in results:
            label, total, lat, lon, matched_name, level, age_band, departments = row
            logger.info(f"  地点: {label} ({total}件)")
            logger.info(f"  座標: ({lat:.6f}, {lon:.6f}) [{level}: {matched_name}]")
            logger.info(f"  最多年代: {age_band}")
            logger.info(f"  診療科: {departments}")
            logger.info("-" * 50)

    def run_etl(self, record_filter: Optional[RecordFilter] = None,
                show_progress: bool = True) -> PipelineResult:
        """ETL処理をフル実行"""
        record_filter = record_filter or RecordFilter()
        run_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")

        try:
            logger.info("=" * 70)
            logger.info("患者住所マップ集計ETLを開始します")
            logger.info("=" * 70)

            # 住所マスタが読めなくても集計は続ける（全件未照合になる）
            try:
                self.loader.load()
            except GazetteerLoadError:
                logger.warning("住所マスタなしで集計します。マスタを確認して再実行してください")

            records = self.load_records()
            result = run_pipeline(records, self.loader.index, record_filter, show_progress=show_progress)

            self.connect_db()
            self.create_output_tables()
            self.save_result(run_id, result, record_filter)
            self.create_indexes()
            self.get_statistics(run_id)
            self.show_sample_results(run_id)

            logger.info("患者住所マップ集計ETLが正常に完了しました")
            return result

        except Exception as e:
            logger.error(f"ETL処理中にエラーが発生しました: {e}")
            raise
        finally:
            self.close_db()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="患者住所を町丁目・市区町村マスタで座標に変換し、地点別に集計する")
    ap.add_argument("--records", default=RECORDS_PATH, help="受診レコードJSON")
    ap.add_argument("--towns", default=TOWN_GAZETTEER_PATH, help="町丁目マスタ（パスまたはURL）")
    ap.add_argument("--municipalities", default=MUNICIPALITY_GAZETTEER_PATH, help="市区町村マスタ（パスまたはURL）")
    ap.add_argument("--output", "-o", default=OUTPUT_DB_PATH, help="出力DB")
    ap.add_argument("--timeout", type=float, default=HTTP_TIMEOUT, help="マスタ取得のHTTPタイムアウト（秒）")
    ap.add_argument("--department", default=None, help="診療科で絞り込み")
    ap.add_argument("--month", default=None, help="対象月（YYYY-MM）")
    ap.add_argument("--start-month", default=None, help="開始月（YYYY-MM）")
    ap.add_argument("--end-month", default=None, help="終了月（YYYY-MM）")
    ap.add_argument("--age-band", choices=AGE_BAND_IDS, default=None, help="年代で絞り込み")
    ap.add_argument("--no-progress", action="store_true", help="進捗バーを表示しない")
    return ap


def main(argv: Optional[List[str]] = None):
    """メイン処理"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    args = build_parser().parse_args(argv)

    logger.info(f"受診レコード: {args.records}")
    logger.info(f"出力DB: {args.output}")

    loader = GazetteerLoader(args.towns, args.municipalities, timeout=args.timeout)
    record_filter = RecordFilter(
        department=args.department,
        month=args.month,
        start_month=args.start_month,
        end_month=args.end_month,
        age_band=args.age_band,
    )

    etl = ClinicGeoETL(args.records, args.output, loader)
    etl.run_etl(record_filter=record_filter, show_progress=not args.no_progress)


if __name__ == "__main__":
    main()
