"""設定モジュール: 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Supabase ---
# 未設定でも import は通す。実際に使う箇所でエラーになる。
SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.getenv("SUPABASE_SECRET_KEY", "") or os.getenv(
    "SUPABASE_SERVICE_ROLE_KEY", ""
)
SUPABASE_SCHEMA: str = os.getenv("SUPABASE_SCHEMA", "public")

# --- Google Maps ---
GOOGLE_MAPS_API_KEY: str = (
    os.getenv("GOOGLE_MAPS_API_KEY")
    or os.getenv("NEXT_PUBLIC_GOOGLE_MAPS_API_KEY")
    or os.getenv("GOOGLE_API")
    or ""
)
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
NEARBY_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"

DEFAULT_RADIUS_KM = 1.5
MIN_RADIUS_KM = 0.5

# --- リクエスト設定 ---
REQUEST_TIMEOUT = 15  # 秒
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

# --- アラート閾値 ---
RANK_DROP_THRESHOLD = 3  # 3 位以上の下落でアラート
RANK_DROP_HIGH_THRESHOLD = 5  # 5 位以上なら severity=high
NEW_ENTRANT_TOP_N = 3
BUSINESS_VISIBILITY_TOP_N = 10
DEFAULT_WEEKLY_DAY = 1  # 0=日曜 .. 6=土曜。未設定時は月曜

# --- メール通知 (Resend) ---
RESEND_API_URL = "https://api.resend.com/emails"
RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
ALERTS_FROM_EMAIL: str = os.getenv("ALERTS_FROM_EMAIL", "")

# --- データ保持期間 ---
DEFAULT_RETENTION_DAYS = 90
DEFAULT_ALERT_RETENTION_DAYS = 120
MIN_RETENTION_DAYS = 7
MAX_RETENTION_DAYS = 365
RETENTION_DAYS_RAW: str | None = os.getenv("RETENTION_DAYS")
ALERT_RETENTION_DAYS_RAW: str | None = os.getenv("ALERT_RETENTION_DAYS")
PRUNE_BATCH_SIZE = 500

# --- 共有レポート ---
REPORT_TTL_DAYS = 30
REPORT_ITEM_LIMIT = 20
REPORT_DELTA_LIMIT = 6
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})

# --- サイト診断 ---
AUDIT_DEFAULT_MAX_PAGES = 20
AUDIT_MAX_PAGES_LIMIT = 50
AUDIT_DEFAULT_MAX_DEPTH = 2
AUDIT_MAX_DEPTH_LIMIT = 3
AUDIT_TIME_LIMIT = 120.0  # 秒

# --- ログ ---
LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
