"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Steam ---
SEARCH_RESULTS_URL = "https://store.steampowered.com/search/results/"
SEARCH_REFERER = "https://store.steampowered.com/search/?filter=popularwishlist"
APP_DETAILS_URL = "https://store.steampowered.com/api/appdetails"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

# --- 取得範囲 ---
TOP_N = 200
PAGE_SIZE = 100

# --- リクエスト設定 ---
PAGE_INTERVAL = 0.5  # ページ取得間隔（秒）
DETAIL_INTERVAL = 2.0  # 詳細取得間隔（秒）
REQUEST_TIMEOUT = 15  # 秒

# --- 差分判定 ---
RISER_THRESHOLD = 2  # この値を超えて順位が上がったものを急上昇とする

# --- 保存先 ---
DATA_DIR = Path(os.environ.get("TRACKER_DATA_DIR") or Path(__file__).resolve().parent.parent)
REPORTS_DIR = DATA_DIR / "reports"
WATCHLISTS_DIR = DATA_DIR / "watchlists"

# "file" or "supabase"
SNAPSHOT_BACKEND = os.environ.get("SNAPSHOT_BACKEND", "file")

# --- Supabase（SNAPSHOT_BACKEND=supabase の場合のみ必須） ---
SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.environ.get("SUPABASE_SECRET_KEY", "")
SUPABASE_SCHEMA = "wishlist_tracker"

# --- メール通知 (Resend) ---
RESEND_API_URL = "https://api.resend.com/emails"
RESEND_API_KEY: str = os.environ.get("RESEND_API_KEY", "")
EMAIL_TO: str = os.environ.get("EMAIL_TO", "")
EMAIL_FROM: str = os.environ.get(
    "EMAIL_FROM", "Steam Wishlist Tracker <notifications@example.com>"
)

# --- ログ ---
LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_DIR.mkdir(exist_ok=True)
