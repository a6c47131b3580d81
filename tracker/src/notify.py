"""ウォッチリストのメール通知モジュール (Resend API).

最新のウォッチリスト Markdown を読み直して HTML / テキスト本文を組み立てる。
API キー・宛先が未設定の場合は送信せずにスキップする（失敗扱いにしない）。
"""

from __future__ import annotations

import html
import logging
import re
import sys
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import requests

from src.config import (
    EMAIL_FROM,
    EMAIL_TO,
    REQUEST_TIMEOUT,
    RESEND_API_KEY,
    RESEND_API_URL,
    TOP_N,
    WATCHLISTS_DIR,
)
from src.models import UNKNOWN, NotificationResult
from src.report import FIRST_RUN_NOTICE, NEW_ENTRIES_HEADING, RISERS_HEADING, latest_artifact, split_row

logger = logging.getLogger(__name__)

_ROW_PATTERN = re.compile(r"^\|[ \t]*\d+[ \t]*\|.*$", re.MULTILINE)


@dataclass
class WatchlistContent:
    """ウォッチリスト Markdown を読み戻した内容."""

    is_first_run: bool = False
    new_entries: list[dict] = field(default_factory=list)
    risers: list[dict] = field(default_factory=list)


def parse_watchlist_markdown(content: str) -> WatchlistContent:
    """ウォッチリスト Markdown を行データに戻す."""
    result = WatchlistContent(is_first_run=FIRST_RUN_NOTICE in content)
    if result.is_first_run:
        return result

    new_section, _, riser_section = content.partition(RISERS_HEADING)
    _, _, new_section = new_section.partition(NEW_ENTRIES_HEADING)

    for line in _ROW_PATTERN.findall(new_section):
        cells = split_row(line)
        if len(cells) < 4:
            continue
        result.new_entries.append({
            "rank": cells[0],
            "title": cells[1],
            "followers": cells[2],
            "app_id": cells[3],
            "developer": _cell_at(cells, 4),
            "publisher": _cell_at(cells, 5),
        })

    for line in _ROW_PATTERN.findall(riser_section):
        cells = split_row(line)
        if len(cells) < 6:
            continue
        result.risers.append({
            "rank": cells[0],
            "previous_rank": cells[1],
            "change": cells[2],
            "title": cells[3],
            "followers": cells[4],
            "app_id": cells[5],
            "developer": _cell_at(cells, 6),
            "publisher": _cell_at(cells, 7),
        })

    return result


def _cell_at(cells: list[str], index: int) -> str:
    return cells[index] if len(cells) > index and cells[index] else UNKNOWN


_STYLES = """
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 20px; }
  h1 { color: #1a1a2e; border-bottom: 2px solid #4a90d9; padding-bottom: 10px; }
  h2 { color: #16213e; margin-top: 30px; }
  table { border-collapse: collapse; width: 100%; margin: 15px 0; }
  th, td { border: 1px solid #ddd; padding: 10px 12px; text-align: left; }
  th { background-color: #4a90d9; color: white; }
  .rank { font-weight: bold; color: #4a90d9; }
  .change { color: #28a745; font-weight: bold; }
  .no-changes { color: #666; font-style: italic; padding: 20px; background: #f9f9f9; }
  .first-run { color: #666; font-style: italic; padding: 20px; background: #fff3cd; }
  .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #ddd; color: #666; font-size: 0.9em; }
"""


def build_email_html(watchlist: WatchlistContent, today: date | None = None) -> str:
    """HTML 本文を生成する."""
    today = today or date.today()
    e = html.escape
    parts = [
        "<!DOCTYPE html>",
        f"<html><head><style>{_STYLES}</style></head><body>",
        "<h1>Steam Wishlist Watchlist Update</h1>",
        f"<p><strong>Date:</strong> {today:%A, %B %d, %Y}</p>",
    ]

    if watchlist.is_first_run:
        parts.append(
            '<div class="first-run">This is the first run - baseline established. '
            "Future runs will show changes.</div>"
        )
    else:
        parts.append(f"<h2>New to Top {TOP_N}</h2>")
        if watchlist.new_entries:
            parts.append(
                "<table><thead><tr><th>Rank</th><th>Title</th><th>Followers</th>"
                "<th>Developer</th><th>Publisher</th></tr></thead><tbody>"
            )
            for g in watchlist.new_entries:
                parts.append(
                    f'<tr><td class="rank">#{e(g["rank"])}</td><td>{e(g["title"])}</td>'
                    f'<td>{e(g["followers"])}</td><td>{e(g["developer"])}</td>'
                    f'<td>{e(g["publisher"])}</td></tr>'
                )
            parts.append("</tbody></table>")
        else:
            parts.append(f'<div class="no-changes">No new entries to the top {TOP_N} today.</div>')

        parts.append("<h2>Rising Titles (Up 3+ Spots)</h2>")
        if watchlist.risers:
            parts.append(
                "<table><thead><tr><th>Rank</th><th>Change</th><th>Title</th>"
                "<th>Followers</th><th>Developer</th><th>Publisher</th></tr></thead><tbody>"
            )
            for g in watchlist.risers:
                parts.append(
                    f'<tr><td class="rank">#{e(g["rank"])}</td>'
                    f'<td class="change">{e(g["change"])}</td><td>{e(g["title"])}</td>'
                    f'<td>{e(g["followers"])}</td><td>{e(g["developer"])}</td>'
                    f'<td>{e(g["publisher"])}</td></tr>'
                )
            parts.append("</tbody></table>")
        else:
            parts.append('<div class="no-changes">No significant risers today.</div>')

    parts += [
        '<div class="footer">',
        "<p>This report was automatically generated by the Steam Wishlist Tracker.</p>",
        '<p>Data source: <a href="https://store.steampowered.com/search/?filter=popularwishlist">'
        "Steam Most Wishlisted</a></p>",
        "</div></body></html>",
    ]
    return "\n".join(parts)


def build_email_text(watchlist: WatchlistContent, today: date | None = None) -> str:
    """プレーンテキスト本文を生成する."""
    today = today or date.today()
    lines = [f"Steam Wishlist Watchlist Update - {today:%Y-%m-%d}", "=" * 50, ""]

    if watchlist.is_first_run:
        lines.append("This is the first run - baseline established. Future runs will show changes.")
        return "\n".join(lines) + "\n"

    lines += [f"NEW TO TOP {TOP_N}", "-" * 30]
    if watchlist.new_entries:
        for g in watchlist.new_entries:
            lines.append(f"#{g['rank']} {g['title']} ({g['followers']} followers)")
            lines.append(f"    Developer: {g['developer']} / Publisher: {g['publisher']}")
            lines.append("")
    else:
        lines += ["No new entries today.", ""]

    lines += ["RISING TITLES (+3 spots)", "-" * 30]
    if watchlist.risers:
        for g in watchlist.risers:
            lines.append(f"#{g['rank']} {g['title']} ({g['change']} from #{g['previous_rank']})")
            lines.append(f"    Developer: {g['developer']} / Publisher: {g['publisher']}")
            lines.append("")
    else:
        lines.append("No significant risers today.")

    return "\n".join(lines) + "\n"


def send_notification(
    api_key: str | None = None,
    email_to: str | None = None,
    watchlists_dir: Path = WATCHLISTS_DIR,
) -> NotificationResult:
    """最新のウォッチリストをメール送信する. 例外は送出しない."""
    api_key = RESEND_API_KEY if api_key is None else api_key
    email_to = EMAIL_TO if email_to is None else email_to

    if not api_key:
        logger.info("RESEND_API_KEY 未設定のためメール通知をスキップ")
        return NotificationResult(success=False, reason="no_api_key")

    if not email_to:
        logger.info("EMAIL_TO 未設定のためメール通知をスキップ")
        return NotificationResult(success=False, reason="no_recipient")

    path = latest_artifact(watchlists_dir, "watchlist_*.md")
    if path is None:
        logger.info("ウォッチリストが無いためメール通知をスキップ")
        return NotificationResult(success=False, reason="no_watchlist")

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("ウォッチリスト読み込みエラー: %s, error=%s", path, e)
        return NotificationResult(success=False, reason="exception")

    watchlist = parse_watchlist_markdown(content)
    today = date.today()
    payload = {
        "from": EMAIL_FROM,
        "to": [email_to],
        "subject": f"Steam Wishlist Watchlist Update - {today:%b %d, %Y}",
        "html": build_email_html(watchlist, today),
        "text": build_email_text(watchlist, today),
    }

    try:
        resp = requests.post(
            RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error("メール送信エラー: %s", e)
        return NotificationResult(success=False, reason="exception")

    if not resp.ok:
        logger.error("メール送信失敗: status=%d, body=%s", resp.status_code, resp.text)
        return NotificationResult(success=False, reason="send_failed")

    try:
        data = resp.json()
    except ValueError:
        data = None
    email_id = data.get("id") if isinstance(data, dict) else None

    logger.info("メール送信完了: to=%s, 新規=%d 件, 急上昇=%d 件",
                email_to, len(watchlist.new_entries), len(watchlist.risers))
    return NotificationResult(success=True, email_id=email_id)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    result = send_notification()
    if not result.success:
        logger.info("メール未送信: %s", result.reason)
    sys.exit(0)
