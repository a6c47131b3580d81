"""Steam ウィッシュリストランキングの取得モジュール.

取得戦略:
  1. ストア検索 API (filter=popularwishlist) の results_html を 100 件ずつ取得
  2. BeautifulSoup で各行の App ID とタイトルを抽出
  3. 開発元・販売元は appdetails API から 1 タイトルずつ取得
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass

import requests
from bs4 import BeautifulSoup

from src.config import (
    APP_DETAILS_URL,
    PAGE_INTERVAL,
    PAGE_SIZE,
    REQUEST_TIMEOUT,
    SEARCH_REFERER,
    SEARCH_RESULTS_URL,
    TOP_N,
    USER_AGENT,
)
from src.models import UNKNOWN, RankedItem

logger = logging.getLogger(__name__)


@dataclass
class RequestPacer:
    """リクエスト間の待機ポリシー.

    max_interval を指定すると min〜max のランダム秒数、省略時は固定秒数待機する。
    """

    min_interval: float
    max_interval: float | None = None
    sleep: Callable[[float], None] = time.sleep

    def wait(self) -> None:
        if self.max_interval is None:
            interval = self.min_interval
        else:
            interval = random.uniform(self.min_interval, self.max_interval)
        if interval > 0:
            self.sleep(interval)


def fetch_results_page(start: int, count: int) -> str | None:
    """検索 API から results_html を取得する.

    Args:
        start: 取得開始位置（0始まり）
        count: 取得件数

    Returns:
        results_html 文字列。失敗時は None。
    """
    params = {
        "query": "",
        "start": start,
        "count": count,
        "dynamic_data": "",
        "sort_by": "_ASC",
        "supportedlang": "english",
        "filter": "popularwishlist",
        "infinite": 1,
    }
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/json, text/javascript, */*; q=0.01",
        "Accept-Language": "en-US,en;q=0.9",
        "X-Requested-With": "XMLHttpRequest",
        "Referer": SEARCH_REFERER,
    }

    try:
        resp = requests.get(
            SEARCH_RESULTS_URL, params=params, headers=headers, timeout=REQUEST_TIMEOUT
        )
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("検索結果取得失敗: start=%d, count=%d, error=%s", start, count, e)
        return None

    html = data.get("results_html") if isinstance(data, dict) else None
    if not html:
        logger.error("レスポンスに results_html がありません: start=%d", start)
        return None
    return html


def parse_search_results(html: str, start_rank: int = 0) -> list[RankedItem]:
    """results_html からタイトル一覧を抽出する.

    順位は start_rank + 1 からの連番。フォロワー数はこの API では取得できない。
    """
    soup = BeautifulSoup(html, "html.parser")
    items: list[RankedItem] = []

    for row in soup.select("[data-ds-appid]"):
        title_tag = row.select_one("span.title")
        if title_tag is None:
            continue
        title = title_tag.get_text(strip=True)
        if not title:
            continue

        # バンドルは "123,456" の形式になる
        app_id = row["data-ds-appid"].split(",")[0].strip() or None
        items.append(RankedItem(
            rank=start_rank + len(items) + 1,
            title=title,
            app_id=app_id,
        ))

    return items


def scrape_top_ranked(
    total: int = TOP_N,
    page_size: int = PAGE_SIZE,
    pacer: RequestPacer | None = None,
) -> list[RankedItem]:
    """ウィッシュリスト上位 total 件を取得する.

    1 ページでも失敗した場合は部分的な結果を返さず空リストを返す。
    """
    pacer = pacer or RequestPacer(PAGE_INTERVAL)
    collected: list[RankedItem] = []

    for start in range(0, total, page_size):
        if start > 0:
            pacer.wait()

        count = min(page_size, total - start)
        logger.info("取得中: %d〜%d 位", start + 1, start + count)
        html = fetch_results_page(start, count)
        if html is None:
            return []

        collected.extend(parse_search_results(html, start_rank=start))

    # ページ境界で件数がずれても順位は 1 からの連番に振り直す
    items = [
        RankedItem(rank=i, title=item.title, app_id=item.app_id, followers=item.followers)
        for i, item in enumerate(collected, start=1)
    ]
    logger.info("取得件数: %d 件", len(items))
    return items


def fetch_game_details(app_id: str) -> dict[str, str]:
    """appdetails API から開発元・販売元を取得する.

    Returns:
        {"developer": str, "publisher": str}。取得できない項目は "Unknown"。
        例外は送出しない。
    """
    unknown = {"developer": UNKNOWN, "publisher": UNKNOWN}
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
    }

    try:
        resp = requests.get(
            APP_DETAILS_URL,
            params={"appids": app_id},
            headers=headers,
            timeout=REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("詳細取得失敗: app_id=%s, error=%s", app_id, e)
        return unknown

    entry = _deep_get(data, app_id)
    if not isinstance(entry, dict) or not entry.get("success") or not entry.get("data"):
        logger.warning("詳細データなし: app_id=%s", app_id)
        return unknown

    app_data = entry["data"]
    if not isinstance(app_data, dict):
        logger.warning("詳細データの形式が不正: app_id=%s", app_id)
        return unknown

    return {
        "developer": _first(app_data.get("developers")) or UNKNOWN,
        "publisher": _first(app_data.get("publishers")) or UNKNOWN,
    }


def _first(values) -> str | None:
    if isinstance(values, list) and values:
        return str(values[0]).strip() or None
    return None


def _deep_get(d: dict, *keys: str):
    """ネストされた dict から安全に値を取得する."""
    for key in keys:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d
