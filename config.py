"""
患者住所マップ集計の設定値。

パスはCLI引数で上書きできる。
"""

# 町丁目マスタ / 市区町村マスタ（ローカルパスまたは http(s) URL）
TOWN_GAZETTEER_PATH = "data/osaka_towns.json"
MUNICIPALITY_GAZETTEER_PATH = "data/municipalities.json"

# 受診レコード（ダッシュボードから書き出したJSON配列）
RECORDS_PATH = "data/visit_records.json"

# 出力DB
OUTPUT_DB_PATH = "output/clinic_geo.db"

# マスタ取得時のHTTPタイムアウト（秒）
HTTP_TIMEOUT = 30

# 地名に現れない区切り文字
KEY_SEPARATOR = "|"

# 診療科が空欄のレコードに付けるラベル
DEFAULT_DEPARTMENT = "診療科未設定"

# 年代区分 (id, ラベル, 下限, 上限)。unknown は常に最後
AGE_BANDS = (
    ("0-19", "0〜19歳", 0, 19),
    ("20-39", "20〜39歳", 20, 39),
    ("40-59", "40〜59歳", 40, 59),
    ("60-79", "60〜79歳", 60, 79),
    ("80+", "80歳以上", 80, None),
    ("unknown", "年齢不明", None, None),
)
AGE_BAND_IDS = tuple(band[0] for band in AGE_BANDS)
UNKNOWN_AGE_BAND = "unknown"

# これを超える年齢は不明扱い
MAX_VALID_AGE = 120
