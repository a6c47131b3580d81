"""Steam ウィッシュリスト順位追跡 — メインエントリーポイント.

処理フロー:
  1. ウィッシュリスト上位 200 件を取得（または --games-file から読み込み）
  2. 前回スナップショットと比較して新規ランクイン・急上昇を抽出
  3. 順位表レポート・スナップショット・ウォッチリストを保存
  4. 対象タイトルの開発元・販売元を 1 件ずつ取得してウォッチリストに書き戻す
  5. ウォッチリストをメール通知
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from src.config import DATA_DIR, DETAIL_INTERVAL, LOG_DIR, PAGE_INTERVAL, SNAPSHOT_BACKEND
from src.changes import track
from src.enrich import enrich_items
from src.models import UNKNOWN, EnrichmentRecord, RankedItem
from src.notify import send_notification
from src.scraper import RequestPacer, fetch_game_details, scrape_top_ranked
from src.store import build_snapshot_store, item_from_dict


def setup_logging() -> None:
    """ロギングの初期設定."""
    log_file = LOG_DIR / f"tracker_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Steam ウィッシュリスト順位追跡")
    parser.add_argument(
        "--games-file", type=Path,
        help="取得済みの順位データ (JSON 配列) を使い、Steam へのアクセスを省略する",
    )
    parser.add_argument(
        "--known-file", type=Path,
        help="既知の開発元・販売元 (JSON 配列: title / developer / publisher)",
    )
    parser.add_argument("--data-dir", type=Path, default=DATA_DIR, help="レポートの保存先")
    parser.add_argument("--no-email", action="store_true", help="メール通知を行わない")
    return parser.parse_args(argv)


def load_games_file(path: Path) -> list[RankedItem]:
    """JSON 配列 [{"rank", "title", "appId", "followers"}, ...] を読み込む."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("games", [])
    return [item_from_dict(g) for g in data]


def load_known_file(path: Path) -> dict[str, EnrichmentRecord]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return {
        w["title"]: EnrichmentRecord(
            title=w["title"],
            app_id=w.get("appId"),
            developer=w.get("developer") or UNKNOWN,
            publisher=w.get("publisher") or UNKNOWN,
        )
        for w in data
    }


def run(argv: list[str] | None = None) -> int:
    """メイン処理. 終了コードを返す."""
    args = parse_args(argv)
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("=== ウィッシュリスト順位追跡 開始 ===")
    start_time = time.time()

    # 1. 順位データ取得
    try:
        if args.games_file:
            logger.info("[1/4] 順位データ読み込み: %s", args.games_file)
            items = load_games_file(args.games_file)
        else:
            logger.info("[1/4] Steam から順位データ取得")
            items = scrape_top_ranked(pacer=RequestPacer(PAGE_INTERVAL))
        known = load_known_file(args.known_file) if args.known_file else None
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error("入力データの読み込みに失敗しました: %s", e)
        return 1

    if not items:
        logger.error("順位データが取得できませんでした（ページ構造の変更またはブロックの可能性）。終了します。")
        return 1

    # 2. 差分判定・保存
    logger.info("[2/4] 差分判定 (%d 件)", len(items))
    try:
        store = build_snapshot_store(SNAPSHOT_BACKEND, args.data_dir / "reports")
    except ValueError as e:
        logger.error("スナップショットストアの設定エラー: %s", e)
        return 1

    result = track(
        items,
        store,
        reports_dir=args.data_dir / "reports",
        watchlists_dir=args.data_dir / "watchlists",
        known=known,
    )

    # 3. 開発元・販売元の書き戻し
    targets = [] if result.diff.is_baseline else result.needs_enrichment
    logger.info("[3/4] ウォッチリスト書き戻し (%d 件)", len(targets))
    enriched = enrich_items(
        result.watchlist_path,
        targets,
        fetch_details=fetch_game_details,
        pacer=RequestPacer(DETAIL_INTERVAL),
    )

    # 4. メール通知
    if args.no_email:
        logger.info("[4/4] メール通知: --no-email のためスキップ")
    else:
        logger.info("[4/4] メール通知")
        notification = send_notification(watchlists_dir=args.data_dir / "watchlists")
        if notification.success:
            logger.info("メール送信成功: id=%s", notification.email_id)
        else:
            logger.info("メール未送信: %s", notification.reason)

    # サマリ
    elapsed = time.time() - start_time
    logger.info("=== ウィッシュリスト順位追跡 完了 ===")
    logger.info("対象: %d 件, 詳細取得: %d / %d 件, 所要時間: %.1f 秒",
                len(items), len(enriched), len(targets), elapsed)
    return 0


if __name__ == "__main__":
    sys.exit(run())
