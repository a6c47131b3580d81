"""前回スナップショットとの差分判定・保存モジュール.

処理フロー:
  1. ストアから最新（= 前回）のスナップショットを取得
  2. 今回の順位表と比較して新規ランクイン・急上昇を抽出
  3. 順位表レポート・スナップショット・ウォッチリストを保存
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from src.config import REPORTS_DIR, RISER_THRESHOLD, WATCHLISTS_DIR
from src.models import DiffResult, EnrichmentRecord, RankedItem, Riser, Snapshot
from src.report import make_timestamp, render_report, render_watchlist, write_artifact

logger = logging.getLogger(__name__)


def find_changes(
    current: Sequence[RankedItem],
    previous: Sequence[RankedItem] | None,
    threshold: int = RISER_THRESHOLD,
) -> DiffResult:
    """今回と前回の順位表から新規ランクイン・急上昇を求める.

    同一性はタイトルのみで判定する（App ID は見ない）。前回から消えたタイトルは
    記録しない。出力は current の並び順を保つ。

    Args:
        current: 今回の順位表
        previous: 前回の順位表。空なら初回実行として扱う。
        threshold: 順位の上昇幅がこの値を超えたら急上昇

    Returns:
        DiffResult
    """
    if not previous:
        return DiffResult(is_baseline=True)

    # 重複タイトルは後勝ち
    previous_by_title = {item.title: item for item in previous}

    result = DiffResult()
    for item in current:
        prev = previous_by_title.get(item.title)
        if prev is None:
            result.new_entries.append(item)
            continue

        delta = prev.rank - item.rank
        if delta > threshold:
            result.risers.append(Riser(
                rank=item.rank,
                title=item.title,
                app_id=item.app_id,
                followers=item.followers,
                previous_rank=prev.rank,
                change=delta,
            ))

    return result


@dataclass
class TrackResult:
    """track の戻り値."""

    diff: DiffResult
    timestamp: str
    report_path: Path
    watchlist_path: Path

    @property
    def needs_enrichment(self) -> list[RankedItem]:
        """開発元・販売元を取得すべきタイトル（新規 → 急上昇の順）."""
        risers = [
            RankedItem(rank=r.rank, title=r.title, app_id=r.app_id, followers=r.followers)
            for r in self.diff.risers
        ]
        return [*self.diff.new_entries, *risers]


def track(
    items: Sequence[RankedItem],
    store,
    reports_dir: Path = REPORTS_DIR,
    watchlists_dir: Path = WATCHLISTS_DIR,
    known: Mapping[str, EnrichmentRecord] | None = None,
    now: datetime | None = None,
) -> TrackResult:
    """差分判定を行い、レポート・スナップショット・ウォッチリストを保存する.

    Raises:
        ValueError: items が空の場合（何も書き込まない）
    """
    if not items:
        raise ValueError("順位データがありません")

    now = now or datetime.now()
    timestamp = make_timestamp(now)

    previous = store.latest()
    diff = find_changes(items, previous.items if previous else [])

    report_path = write_artifact(
        reports_dir, f"report_{timestamp}.md", render_report(items, now=now)
    )
    store.append(Snapshot(captured_at=timestamp, items=list(items)))
    watchlist_path = write_artifact(
        watchlists_dir, f"watchlist_{timestamp}.md", render_watchlist(diff, known, now=now)
    )

    logger.info("--- サマリ ---")
    logger.info("対象タイトル数: %d", len(items))
    if diff.is_baseline:
        logger.info("初回実行: 比較用のベースラインを作成しました")
    else:
        logger.info("新規ランクイン: %d 件", len(diff.new_entries))
        logger.info("急上昇: %d 件", len(diff.risers))

    return TrackResult(
        diff=diff,
        timestamp=timestamp,
        report_path=report_path,
        watchlist_path=watchlist_path,
    )
