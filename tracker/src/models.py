"""データモデル定義."""

from __future__ import annotations

from dataclasses import dataclass, field

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class RankedItem:
    """ウィッシュリストランキングの1タイトルを表す."""

    rank: int  # 順位（1始まり）
    title: str  # 表示タイトル（同一性の判定キー）
    app_id: str | None = None  # Steam App ID
    followers: int | None = None  # フォロワー数 (None / 0 = 不明)


@dataclass(frozen=True)
class Snapshot:
    """1回分の取得結果."""

    captured_at: str  # ファイル名にも使うタイムスタンプ (YYYY-MM-DD_HH-MM-SS)
    items: list[RankedItem] = field(default_factory=list)


@dataclass(frozen=True)
class Riser:
    """前回より順位を上げたタイトル."""

    rank: int
    title: str
    app_id: str | None
    followers: int | None
    previous_rank: int
    change: int  # previous_rank - rank（正の整数）


@dataclass
class DiffResult:
    """差分判定の結果."""

    new_entries: list[RankedItem] = field(default_factory=list)
    risers: list[Riser] = field(default_factory=list)
    is_baseline: bool = False  # 比較対象の前回データが無い初回実行


@dataclass
class EnrichmentRecord:
    """ウォッチリストに書き戻す開発元・販売元."""

    title: str
    app_id: str | None = None
    developer: str = UNKNOWN
    publisher: str = UNKNOWN


@dataclass
class MergeResult:
    """merge_enrichment の戻り値."""

    text: str
    matched: bool


@dataclass
class NotificationResult:
    """メール通知の結果."""

    success: bool
    reason: str | None = None  # no_api_key / no_recipient / no_watchlist / send_failed / exception
    email_id: str | None = None
