"""Markdown レポート・ウォッチリストの生成モジュール.

ウォッチリストの表は enrich / notify が正規表現で読み書きするため、
列の並びを変える場合は両モジュールも合わせて変更すること。

  New to Top 200:  | Rank | Title | Followers | App ID | Developer | Publisher |
  Rising Titles:   | Current Rank | Previous Rank | Change | Title | Followers | App ID | Developer | Publisher |
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path

from src.config import TOP_N
from src.models import UNKNOWN, DiffResult, EnrichmentRecord, RankedItem

logger = logging.getLogger(__name__)

NEW_ENTRIES_HEADING = f"## New to Top {TOP_N}"
RISERS_HEADING = "## Rising Titles (Up 3+ Spots)"
FIRST_RUN_NOTICE = "*This is the first run - no previous data to compare against.*"
NO_NEW_ENTRIES = "*No new entries*"
NO_RISERS = "*No significant risers*"

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_CELL_SPLIT = re.compile(r"(?<!\\)\|")


def make_timestamp(now: datetime | None = None) -> str:
    """辞書順 = 時系列順になるファイル名用タイムスタンプ."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def format_followers(followers: int | None) -> str:
    """フォロワー数をカンマ区切りにする. 不明 (None / 0) は N/A."""
    if not followers:
        return "N/A"
    return f"{followers:,}"


def title_cell(title: str) -> str:
    """タイトル列のセル文字列. 改行を空白に、| を \\| に置き換える以外は変更しない.

    enrich はこの関数で変換した文字列と完全一致する行だけを書き換える。
    """
    return str(title).replace("\r", " ").replace("\n", " ").replace("|", "\\|")


def escape_cell(value) -> str:
    """表のセル内で区切り文字にならないよう | をエスケープする. 空欄は N/A."""
    if value is None or value == "":
        return "N/A"
    return title_cell(str(value))


def split_row(line: str) -> list[str]:
    """表の 1 行をセルに分割する（エスケープ済みの | は区切りにしない）."""
    cells = _CELL_SPLIT.split(line.strip())
    if cells and cells[0] == "":
        cells = cells[1:]
    if cells and cells[-1] == "":
        cells = cells[:-1]
    return [c.strip().replace("\\|", "|") for c in cells]


def render_report(items: Iterable[RankedItem], now: datetime | None = None) -> str:
    """全タイトルの順位表を生成する."""
    now = now or datetime.now()
    lines = [
        "# Steam Most Wishlisted Games Report",
        "",
        f"**Generated:** {now:%Y-%m-%d %H:%M:%S}",
        "",
        "| Rank | Title | Followers |",
        "|------|-------|-----------|",
    ]
    for item in items:
        lines.append(
            f"| {item.rank} | {title_cell(item.title)} | {format_followers(item.followers)} |"
        )
    return "\n".join(lines) + "\n"


def render_watchlist(
    diff: DiffResult,
    known: Mapping[str, EnrichmentRecord] | None = None,
    now: datetime | None = None,
) -> str:
    """新規ランクイン・急上昇タイトルの一覧を生成する.

    Args:
        diff: find_changes の結果
        known: タイトル -> 既知の開発元・販売元。無いものは "Unknown" で出力し、
            後から enrich で埋める。タイトル列は title_cell の変換のみで、
            空白の詰めや空欄の N/A 置換は行わない。
        now: 生成日時
    """
    now = now or datetime.now()
    known = known or {}
    lines = [
        f"# Watchlist - {now:%Y-%m-%d}",
        "",
        f"**Generated:** {now:%Y-%m-%d %H:%M:%S}",
        "",
    ]

    if diff.is_baseline:
        lines += [FIRST_RUN_NOTICE, ""]
        return "\n".join(lines) + "\n"

    lines += [NEW_ENTRIES_HEADING, ""]
    if not diff.new_entries:
        lines += [NO_NEW_ENTRIES, ""]
    else:
        lines += [
            "| Rank | Title | Followers | App ID | Developer | Publisher |",
            "|------|-------|-----------|--------|-----------|-----------|",
        ]
        for item in diff.new_entries:
            developer, publisher = _known_fields(known, item.title)
            lines.append(
                f"| {item.rank} | {title_cell(item.title)} | {format_followers(item.followers)} "
                f"| {escape_cell(item.app_id)} | {developer} | {publisher} |"
            )
        lines.append("")

    lines += [RISERS_HEADING, ""]
    if not diff.risers:
        lines += [NO_RISERS, ""]
    else:
        lines += [
            "| Current Rank | Previous Rank | Change | Title | Followers | App ID | Developer | Publisher |",
            "|--------------|---------------|--------|-------|-----------|--------|-----------|-----------|",
        ]
        for r in diff.risers:
            developer, publisher = _known_fields(known, r.title)
            lines.append(
                f"| {r.rank} | {r.previous_rank} | +{r.change} | {title_cell(r.title)} "
                f"| {format_followers(r.followers)} | {escape_cell(r.app_id)} "
                f"| {developer} | {publisher} |"
            )
        lines.append("")

    return "\n".join(lines) + "\n"


def _known_fields(known: Mapping[str, EnrichmentRecord], title: str) -> tuple[str, str]:
    record = known.get(title)
    if record is None:
        return UNKNOWN, UNKNOWN
    return escape_cell(record.developer or UNKNOWN), escape_cell(record.publisher or UNKNOWN)


def write_new_file(directory: Path, filename: str, content: str, max_suffix: int = 99) -> Path:
    """既存ファイルを上書きせずに書き出す.

    同名のファイルがあれば拡張子の前に _01, _02 ... を付ける。
    "." < "_" なので、付番したファイルは元のファイルより辞書順で後ろになる。

    Raises:
        FileExistsError: max_suffix まで全て使用済みの場合
    """
    directory.mkdir(parents=True, exist_ok=True)
    base = Path(filename)
    for n in range(max_suffix + 1):
        name = filename if n == 0 else f"{base.stem}_{n:02d}{base.suffix}"
        path = directory / name
        try:
            with path.open("x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError:
            continue
        return path
    raise FileExistsError(f"{directory / filename} の連番が上限に達しました")


def write_artifact(directory: Path, filename: str, content: str) -> Path:
    """レポートを書き出す. 既存ファイルは消さない（追記型）."""
    path = write_new_file(directory, filename, content)
    logger.info("保存: %s", path)
    return path


def latest_artifact(directory: Path, pattern: str = "*.md") -> Path | None:
    """ファイル名が辞書順で最大のものを返す."""
    if not directory.exists():
        return None
    files = sorted(directory.glob(pattern))
    return files[-1] if files else None
