"""ウォッチリストへの開発元・販売元の書き戻しモジュール.

生成済みのウォッチリストを作り直さず、該当行の末尾 2 列
（Developer / Publisher）が両方 "Unknown" の場合だけ置き換える。
置き換え済みの行は二度とマッチしないため、同じレコードで何度呼んでも安全。
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from src.config import DETAIL_INTERVAL, WATCHLISTS_DIR
from src.models import UNKNOWN, EnrichmentRecord, MergeResult, RankedItem
from src.report import escape_cell, latest_artifact, title_cell
from src.scraper import RequestPacer

logger = logging.getLogger(__name__)

_PLACEHOLDER = rf"[ \t]*{UNKNOWN}[ \t]*\|[ \t]*{UNKNOWN}[ \t]*\|"
_NUM = r"[ \t]*\d+[ \t]*\|"
_CELL = r"[^|\n]*\|"
_FOLLOWERS = r"[ \t]*(?:[\d,]+|N/A)[ \t]*\|"


def _row_patterns(title: str) -> list[re.Pattern]:
    title_pattern = rf"[ \t]*{re.escape(title_cell(title))}[ \t]*\|"
    # New: | rank | title | followers | app id | Unknown | Unknown |
    new_entry = rf"^(\|{_NUM}{title_pattern}{_FOLLOWERS}{_CELL})"
    # Riser: | rank | prev rank | +change | title | followers | app id | Unknown | Unknown |
    riser = rf"^(\|{_NUM}{_NUM}[ \t]*\+\d+[ \t]*\|{title_pattern}{_FOLLOWERS}{_CELL})"
    return [
        re.compile(new_entry + _PLACEHOLDER, re.MULTILINE),
        re.compile(riser + _PLACEHOLDER, re.MULTILINE),
    ]


def merge_enrichment(text: str, record: EnrichmentRecord) -> MergeResult:
    """record.title の行の Developer / Publisher 列を埋める.

    Returns:
        MergeResult。該当行が無い（タイトル違い・置き換え済み）場合は
        matched=False で text をそのまま返す。
    """
    developer = escape_cell(record.developer or UNKNOWN)
    publisher = escape_cell(record.publisher or UNKNOWN)

    updated = text
    for pattern in _row_patterns(record.title):
        updated = pattern.sub(lambda m: f"{m.group(1)} {developer} | {publisher} |", updated)

    return MergeResult(text=updated, matched=updated != text)


def enrich_watchlist_file(path: Path | None, record: EnrichmentRecord) -> bool:
    """ウォッチリストファイルに 1 件書き戻す. 更新したら True."""
    if path is None or not path.exists():
        logger.warning("書き戻し先のウォッチリストがありません: %s", record.title)
        return False

    result = merge_enrichment(path.read_text(encoding="utf-8"), record)
    if not result.matched:
        logger.info("該当行なし: %s", record.title)
        return False

    path.write_text(result.text, encoding="utf-8")
    logger.info(
        "更新: %s → Developer: %s, Publisher: %s",
        record.title, record.developer, record.publisher,
    )
    return True


def enrich_items(
    watchlist_path: Path,
    items: Sequence[RankedItem],
    fetch_details: Callable[[str], dict[str, str]],
    pacer: RequestPacer | None = None,
) -> list[EnrichmentRecord]:
    """各タイトルの詳細を順に取得してウォッチリストに書き戻す.

    1 件の失敗で残りを止めない。失敗した行は "Unknown" のまま残る。
    """
    pacer = pacer or RequestPacer(DETAIL_INTERVAL)
    records: list[EnrichmentRecord] = []
    requested = 0

    for item in items:
        if not item.app_id:
            logger.info("App ID なしのためスキップ: %s", item.title)
            continue

        if requested > 0:
            pacer.wait()
        requested += 1

        logger.info("詳細取得中: %s", item.title)
        try:
            details = fetch_details(item.app_id)
            record = EnrichmentRecord(
                title=item.title,
                app_id=item.app_id,
                developer=details.get("developer") or UNKNOWN,
                publisher=details.get("publisher") or UNKNOWN,
            )
            enrich_watchlist_file(watchlist_path, record)
        except Exception:
            logger.exception("書き戻し失敗: %s", item.title)
            continue
        records.append(record)

    return records


def main(argv: list[str] | None = None) -> int:
    """最新のウォッチリストに JSON 1 件を書き戻す.

    例: python -m src.enrich '{"title": "...", "appId": "...", "developer": "...", "publisher": "..."}'
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    args = sys.argv[1:] if argv is None else argv
    if not args:
        logger.error("使い方: python -m src.enrich '{\"title\":\"...\",\"developer\":\"...\",\"publisher\":\"...\"}'")
        return 1

    try:
        data = json.loads(args[0])
        record = EnrichmentRecord(
            title=data["title"],
            app_id=data.get("appId"),
            developer=data.get("developer") or UNKNOWN,
            publisher=data.get("publisher") or UNKNOWN,
        )
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        logger.error("入力 JSON が不正です: %s", e)
        return 1

    path = latest_artifact(WATCHLISTS_DIR, "watchlist_*.md")
    if path is None:
        logger.error("書き戻し対象のウォッチリストがありません")
        return 1

    enrich_watchlist_file(path, record)
    return 0


if __name__ == "__main__":
    sys.exit(main())
