"""changes モジュールのユニットテスト."""

from datetime import datetime

import pytest

from src.changes import find_changes, track
from src.models import EnrichmentRecord, RankedItem, Snapshot
from src.store import MemorySnapshotStore


def _items(*titles: str) -> list[RankedItem]:
    return [RankedItem(rank=i, title=t, app_id=str(1000 + i)) for i, t in enumerate(titles, start=1)]


class TestFindChanges:
    """find_changes のテスト."""

    def test_baseline_when_no_previous(self):
        """前回データが空なら初回扱いになること."""
        result = find_changes(_items("A", "B"), [])

        assert result.is_baseline is True
        assert result.new_entries == []
        assert result.risers == []

    def test_baseline_when_previous_is_none(self):
        """前回データが None でも初回扱いになること."""
        assert find_changes(_items("A"), None).is_baseline is True

    def test_new_entry_and_small_rise(self):
        """1 つ上がっただけでは急上昇にならないこと."""
        previous = _items("A", "B")
        current = _items("B", "C")

        result = find_changes(current, previous)

        assert result.is_baseline is False
        assert [i.title for i in result.new_entries] == ["C"]
        assert result.new_entries[0].rank == 2
        assert result.risers == []

    def test_riser_over_threshold(self):
        """上昇幅が閾値を超えたタイトルが急上昇になること."""
        previous = [RankedItem(rank=10, title="X")]
        current = [RankedItem(rank=5, title="X", followers=1200)]

        result = find_changes(current, previous)

        assert len(result.risers) == 1
        riser = result.risers[0]
        assert riser.title == "X"
        assert riser.rank == 5
        assert riser.previous_rank == 10
        assert riser.change == 5
        assert riser.followers == 1200
        assert result.new_entries == []

    @pytest.mark.parametrize("previous_rank, expected", [(5, 0), (6, 0), (7, 0), (8, 1)])
    def test_threshold_is_strict(self, previous_rank, expected):
        """上昇幅 3 以上で急上昇になること."""
        previous = [RankedItem(rank=previous_rank, title="X")]
        current = [RankedItem(rank=5, title="X")]

        assert len(find_changes(current, previous).risers) == expected

    def test_falling_item_is_unchanged(self):
        """順位が下がったタイトルは報告しないこと."""
        previous = [RankedItem(rank=1, title="X"), RankedItem(rank=2, title="Y")]
        current = [RankedItem(rank=1, title="Y"), RankedItem(rank=9, title="X")]

        result = find_changes(current, previous)

        assert result.new_entries == []
        assert result.risers == []

    def test_new_entry_regardless_of_rank(self):
        """順位に関係なく前回に無いタイトルは新規になること."""
        previous = _items("A", "B", "C")
        current = [RankedItem(rank=1, title="Z"), *_items("A", "B", "C")[1:]]

        result = find_changes(current, previous)

        assert [i.title for i in result.new_entries] == ["Z"]
        assert result.new_entries[0].rank == 1

    def test_dropped_item_not_reported(self):
        """圏外に落ちたタイトルは報告しないこと."""
        result = find_changes(_items("A"), _items("A", "B"))

        assert result.new_entries == []
        assert result.risers == []

    def test_order_follows_current(self):
        """今回の順位順に並ぶこと."""
        previous = [
            RankedItem(rank=20, title="R1"),
            RankedItem(rank=30, title="R2"),
            RankedItem(rank=40, title="R3"),
        ]
        current = [
            RankedItem(rank=1, title="N1"),
            RankedItem(rank=2, title="R3"),
            RankedItem(rank=3, title="N2"),
            RankedItem(rank=4, title="R1"),
            RankedItem(rank=5, title="R2"),
        ]

        result = find_changes(current, previous)

        assert [i.title for i in result.new_entries] == ["N1", "N2"]
        assert [r.title for r in result.risers] == ["R3", "R1", "R2"]
        assert [r.change for r in result.risers] == [38, 16, 25]

    def test_identity_is_title_only(self):
        """App ID が変わっても同じタイトルなら同一扱いになること."""
        previous = [RankedItem(rank=10, title="Remake", app_id="1")]
        current = [RankedItem(rank=2, title="Remake", app_id="2")]

        result = find_changes(current, previous)

        assert result.new_entries == []
        assert result.risers[0].app_id == "2"
        assert result.risers[0].change == 8

    def test_duplicate_previous_titles_last_wins(self):
        """前回データのタイトル重複は後の方を使うこと."""
        previous = [RankedItem(rank=3, title="Dup"), RankedItem(rank=50, title="Dup")]
        current = [RankedItem(rank=1, title="Dup")]

        result = find_changes(current, previous)

        assert result.risers[0].previous_rank == 50

    def test_custom_threshold(self):
        """閾値を指定できること."""
        previous = [RankedItem(rank=3, title="X")]
        current = [RankedItem(rank=1, title="X")]

        assert len(find_changes(current, previous, threshold=1).risers) == 1


class TestTrack:
    """track のテスト."""

    NOW = datetime(2026, 3, 1, 9, 30, 0)

    def test_first_run(self, tmp_path):
        """初回は基準データだけを保存すること."""
        store = MemorySnapshotStore()

        result = track(
            _items("A", "B"), store,
            reports_dir=tmp_path / "reports",
            watchlists_dir=tmp_path / "watchlists",
            now=self.NOW,
        )

        assert result.diff.is_baseline is True
        assert result.timestamp == "2026-03-01_09-30-00"
        assert result.report_path == tmp_path / "reports" / "report_2026-03-01_09-30-00.md"
        assert "first run" in result.watchlist_path.read_text(encoding="utf-8")
        assert store.latest().captured_at == "2026-03-01_09-30-00"
        assert result.needs_enrichment == []

    def test_diff_against_latest_snapshot(self, tmp_path):
        """最新のスナップショットと比較すること."""
        store = MemorySnapshotStore([
            Snapshot(captured_at="2026-02-27_09-00-00", items=_items("Old")),
            Snapshot(captured_at="2026-02-28_09-00-00", items=_items("A", "B", "C", "D", "E")),
        ])
        current = [
            RankedItem(rank=1, title="E", app_id="5"),
            RankedItem(rank=2, title="A", app_id="1"),
            RankedItem(rank=3, title="New", app_id="9"),
        ]

        result = track(
            current, store,
            reports_dir=tmp_path / "reports",
            watchlists_dir=tmp_path / "watchlists",
            now=self.NOW,
        )

        assert [i.title for i in result.diff.new_entries] == ["New"]
        assert [r.title for r in result.diff.risers] == ["E"]
        assert [i.title for i in result.needs_enrichment] == ["New", "E"]
        watchlist = result.watchlist_path.read_text(encoding="utf-8")
        assert "| 3 | New | N/A | 9 | Unknown | Unknown |" in watchlist
        assert "| 1 | 5 | +4 | E | N/A | 5 | Unknown | Unknown |" in watchlist

    def test_known_records_prefill_watchlist(self, tmp_path):
        """既知の開発元・販売元がウォッチリストに入ること."""
        store = MemorySnapshotStore([Snapshot(captured_at="2026-02-28_09-00-00", items=_items("A"))])
        known = {"B": EnrichmentRecord(title="B", developer="Dev B", publisher="Pub B")}

        result = track(
            _items("A", "B"), store,
            reports_dir=tmp_path / "reports",
            watchlists_dir=tmp_path / "watchlists",
            known=known,
            now=self.NOW,
        )

        assert "| 2 | B | N/A | 1002 | Dev B | Pub B |" in result.watchlist_path.read_text(encoding="utf-8")

    def test_empty_input_writes_nothing(self, tmp_path):
        """空の取得結果では何も書き出さないこと."""
        store = MemorySnapshotStore()

        with pytest.raises(ValueError):
            track([], store, reports_dir=tmp_path / "reports", watchlists_dir=tmp_path / "watchlists")

        assert store.snapshots == []
        assert not (tmp_path / "reports").exists()
        assert not (tmp_path / "watchlists").exists()
