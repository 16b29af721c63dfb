"""
Shared fixtures: listing-page builders, record factories and fake fetchers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest

from kaptwatch.core.backends.base import FetchError, FetchResult
from kaptwatch.core.models import BidRecord, BidSnapshot, SelectionSet
from kaptwatch.persistence.store import MemoryKeyValueStore


LIST_URL = "https://www.k-apt.go.kr/bid/bidList.do"

HEADER_ROW = (
    "<tr><th>순번</th><th>구분</th><th>방식</th><th>공고명</th>"
    "<th>마감일</th><th>상태</th><th>단지명</th><th>등록일</th></tr>"
)


def listing_row(
    bid_id: str | int,
    title: str = "[서울] 경비용역 업체 선정",
    *,
    bid_type: str = "일반",
    method: str = "전자입찰",
    deadline: str = "2025-06-20 17:00:00",
    status: str = "진행중",
    apt_name: str = "래미안아파트",
    post_date: str = "2025-06-10 10:00:00",
    href: str | None = "/bid/bidDetail.do?bidNum=1",
) -> str:
    title_cell = f'<a href="{href}">{title}</a>' if href is not None else title
    cells = [str(bid_id), bid_type, method, title_cell, deadline, status, apt_name, post_date]
    return "<tr>" + "".join(f"<td>{cell}</td>" for cell in cells) + "</tr>"


def listing_page(rows: list[str], *, before: str = "") -> str:
    """A K-apt style listing page around the given data rows."""
    return (
        "<html><body>"
        f"{before}"
        '<table class="tbl_list">'
        f"<thead>{HEADER_ROW}</thead>"
        f"<tbody>{''.join(rows)}</tbody>"
        "</table>"
        "</body></html>"
    )


def full_page(start_id: int, count: int = 10, *, day: int = 10) -> str:
    """A page of ``count`` rows with consecutive ids, newest id last."""
    rows = [
        listing_row(
            start_id + i,
            f"[경기] 청소용역 {start_id + i}",
            post_date=f"2025-06-{day:02d} {i:02d}:00:00",
        )
        for i in range(count)
    ]
    return listing_page(rows)


def make_record(bid_id: str, **overrides: Any) -> BidRecord:
    fields: dict[str, Any] = {
        "title": f"[서울] 경비용역 {bid_id}",
        "apt_name": "래미안아파트",
        "bid_type": "일반",
        "method": "전자입찰",
        "status": "진행중",
        "region": "Seoul",
        "category": "security",
        "post_date": datetime(2025, 6, 10, 10, 0),
        "post_date_raw": "2025-06-10 10:00:00",
        "deadline": datetime(2025, 6, 20, 17, 0),
        "deadline_raw": "2025-06-20 17:00:00",
        "detail_link": f"https://www.k-apt.go.kr/bid/bidDetail.do?bidNum={bid_id}",
        "scraped_at": datetime(2025, 6, 11, 9, 0),
    }
    fields.update(overrides)
    return BidRecord(id=bid_id, **fields)


def make_snapshot(*records: BidRecord) -> BidSnapshot:
    return BidSnapshot(tuple(records))


def fetch_result(html: str, url: str = LIST_URL) -> FetchResult:
    return FetchResult(
        url=url,
        final_url=url,
        status_code=200,
        html=html,
        headers={},
        elapsed_ms=1.0,
    )


class ScriptedFetcher:
    """Page source that replays canned pages; exceptions are raised."""

    def __init__(self, pages: dict[int, str | Exception]):
        self.pages = pages
        self.calls: list[int] = []

    async def fetch_page(self, page_no: int) -> FetchResult:
        self.calls.append(page_no)
        page = self.pages.get(page_no, listing_page([]))
        if isinstance(page, Exception):
            raise page
        return fetch_result(page)


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingNotifier:
    def __init__(self) -> None:
        self.reports = []

    def notify(self, report) -> None:
        self.reports.append(report)


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fetch_error() -> FetchError:
    return FetchError("connection reset", url=LIST_URL)


@pytest.fixture
def empty_selection() -> SelectionSet:
    return SelectionSet()
