"""スナップショット保存モジュール.

保存先は 2 種類:
  - FileSnapshotStore: 1 回の実行につき 1 つの JSON ファイル（既定）
  - SupabaseSnapshotStore: wishlist_tracker スキーマの snapshots テーブル

どちらも latest() / append() だけを公開する。テスト用に MemorySnapshotStore を用意。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from src.config import (
    REPORTS_DIR,
    SNAPSHOT_BACKEND,
    SUPABASE_SCHEMA,
    SUPABASE_SECRET_KEY,
    SUPABASE_URL,
)
from src.models import RankedItem, Snapshot
from src.report import write_new_file

logger = logging.getLogger(__name__)


def item_to_dict(item: RankedItem) -> dict:
    return {
        "rank": item.rank,
        "title": item.title,
        "appId": item.app_id,
        "followers": item.followers,
    }


def item_from_dict(data: dict) -> RankedItem:
    """保存済みの 1 件を RankedItem に戻す. 欠けている任意項目は None."""
    app_id = data.get("appId")
    followers = data.get("followers")
    return RankedItem(
        rank=int(data["rank"]),
        title=str(data["title"]),
        app_id=str(app_id) if app_id not in (None, "") else None,
        followers=int(followers) if followers is not None else None,
    )


class FileSnapshotStore:
    """report_<timestamp>.json を 1 実行 1 ファイルで保存する.

    最新 = ファイル名を辞書順に並べたときの最大のもの。
    """

    prefix = "report_"

    def __init__(self, directory: Path = REPORTS_DIR):
        self.directory = Path(directory)

    def latest(self) -> Snapshot | None:
        if not self.directory.exists():
            return None

        files = sorted(self.directory.glob(f"{self.prefix}*.json"))
        if not files:
            return None

        latest_file = files[-1]
        data = json.loads(latest_file.read_text(encoding="utf-8"))
        logger.info("前回データ: %s", latest_file.name)
        return Snapshot(
            captured_at=data.get("timestamp", latest_file.stem[len(self.prefix):]),
            items=[item_from_dict(g) for g in data.get("games", [])],
        )

    def append(self, snapshot: Snapshot) -> Path:
        """同じ秒に 2 回保存しても上書きせず、後の方を最新として残す."""
        payload = {
            "timestamp": snapshot.captured_at,
            "games": [item_to_dict(i) for i in snapshot.items],
        }
        path = write_new_file(
            self.directory,
            f"{self.prefix}{snapshot.captured_at}.json",
            json.dumps(payload, indent=2, ensure_ascii=False),
        )
        logger.info("データ保存: %s", path)
        return path


class MemorySnapshotStore:
    """メモリ上にスナップショットを保持する."""

    def __init__(self, snapshots: list[Snapshot] | None = None):
        self.snapshots: list[Snapshot] = list(snapshots or [])

    def latest(self) -> Snapshot | None:
        if not self.snapshots:
            return None
        return max(self.snapshots, key=lambda s: s.captured_at)

    def append(self, snapshot: Snapshot) -> None:
        self.snapshots.append(snapshot)


class SupabaseSnapshotStore:
    """Supabase の snapshots テーブルに保存する.

    テーブル定義: snapshots(captured_at text, items jsonb)
    """

    table_name = "snapshots"

    def __init__(self, client=None):
        self._client = client

    def _table(self):
        if self._client is None:
            from supabase import create_client

            self._client = create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)
        return self._client.schema(SUPABASE_SCHEMA).table(self.table_name)

    def latest(self) -> Snapshot | None:
        resp = (
            self._table()
            .select("captured_at, items")
            .order("captured_at", desc=True)
            .limit(1)
            .execute()
        )
        if not resp.data:
            return None

        row = resp.data[0]
        return Snapshot(
            captured_at=row["captured_at"],
            items=[item_from_dict(g) for g in row.get("items") or []],
        )

    def append(self, snapshot: Snapshot) -> None:
        self._table().insert({
            "captured_at": snapshot.captured_at,
            "items": [item_to_dict(i) for i in snapshot.items],
        }).execute()
        logger.info("snapshots に 1 件挿入 (%d タイトル)", len(snapshot.items))


def build_snapshot_store(backend: str = SNAPSHOT_BACKEND, reports_dir: Path = REPORTS_DIR):
    """設定に応じたスナップショットストアを返す."""
    if backend == "supabase":
        if not SUPABASE_URL or not SUPABASE_SECRET_KEY:
            raise ValueError("SUPABASE_URL / SUPABASE_SECRET_KEY が設定されていません")
        return SupabaseSnapshotStore()
    if backend == "file":
        return FileSnapshotStore(reports_dir)
    raise ValueError(f"未対応の SNAPSHOT_BACKEND: {backend}")
