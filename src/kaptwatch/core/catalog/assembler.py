"""
Catalog assembler.

Drives the page fetcher and the row parser across listing pages and
folds the results into one deduplicated, sorted ``BidSnapshot``.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Iterable, Protocol

from kaptwatch.core.backends.base import FetchError, FetchResult
from kaptwatch.core.config.models import SourceConfig
from kaptwatch.core.errors import CatalogUnavailableError
from kaptwatch.core.extract.bid_table import parse_bid_page
from kaptwatch.core.logging import get_logger
from kaptwatch.core.models import BidRecord, BidSnapshot


logger = get_logger("catalog.assembler")


class PageSource(Protocol):
    """Anything that can fetch one listing page by number."""

    async def fetch_page(self, page_no: int) -> FetchResult: ...


class StopReason(str, Enum):
    """Why pagination ended."""

    NO_NEXT = "no_next"
    EMPTY_PAGE = "empty_page"
    MAX_PAGES = "max_pages"
    FETCH_ERROR = "fetch_error"


@dataclass
class AssemblyResult:
    """Outcome of one assembler run."""

    snapshot: BidSnapshot
    pages_fetched: int = 0
    stop_reason: StopReason = StopReason.NO_NEXT
    raw_count: int = 0  # Records before dedup
    error: FetchError | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def soft_stopped(self) -> bool:
        return self.error is not None

    @property
    def duplicates_removed(self) -> int:
        return self.raw_count - len(self.snapshot)


class CatalogAssembler:
    """Fetches listing pages sequentially and builds the snapshot.

    Pagination stops at the first of: a page without a next page, an
    empty page, ``max_pages``, or a fetch error. A fetch error after
    page 1 keeps what was accumulated.
    """

    def __init__(
        self,
        fetcher: PageSource,
        *,
        base_url: str,
        page_size: int = 10,
        max_pages: int = 10,
        page_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.base_url = base_url
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_delay_seconds = page_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: SourceConfig,
        fetcher: PageSource,
        **kwargs: object,
    ) -> "CatalogAssembler":
        return cls(
            fetcher,
            base_url=config.list_url,
            page_size=config.page_size,
            max_pages=config.max_pages,
            page_delay_seconds=config.page_delay_seconds,
            **kwargs,  # type: ignore[arg-type]
        )

    async def assemble(self) -> AssemblyResult:
        """Fetch and parse pages, then dedupe and sort.

        Raises:
            CatalogUnavailableError: If the first page cannot be fetched
        """
        accumulated: list[BidRecord] = []
        warnings: list[str] = []
        pages_fetched = 0
        error: FetchError | None = None
        stop_reason = StopReason.MAX_PAGES

        for page_no in range(1, self.max_pages + 1):
            if page_no > 1:
                await self._sleep(self.page_delay_seconds)

            try:
                fetched = await self.fetcher.fetch_page(page_no)
            except FetchError as e:
                if page_no == 1:
                    logger.error(f"Page 1 fetch failed: {e}")
                    raise CatalogUnavailableError(
                        f"Catalog unavailable: {e}",
                        snapshot=BidSnapshot(),
                        cause=e,
                    ) from e
                logger.warning(f"Page {page_no} fetch failed, keeping {len(accumulated)} records: {e}")
                error = e
                stop_reason = StopReason.FETCH_ERROR
                break

            pages_fetched += 1
            page = parse_bid_page(
                fetched.html,
                base_url=self.base_url,
                page_size=self.page_size,
                scraped_at=datetime.utcnow(),
            )
            for warning in page.warnings:
                logger.warning(f"Page {page_no} {warning}")
                warnings.append(f"page {page_no} {warning}")

            if not page.records:
                logger.info(f"Page {page_no}: no records")
                stop_reason = StopReason.EMPTY_PAGE
                break

            accumulated.extend(page.records)
            logger.info(f"Page {page_no}: {len(page.records)} records")

            if not page.has_next:
                stop_reason = StopReason.NO_NEXT
                break

        records = sort_by_post_date(dedupe_records(accumulated))
        snapshot = BidSnapshot(tuple(records))

        logger.info(
            f"Assembled {len(snapshot)} notices from {pages_fetched} pages "
            f"({len(accumulated)} rows, stop: {stop_reason.value})"
        )
        log_breakdown(snapshot)

        return AssemblyResult(
            snapshot=snapshot,
            pages_fetched=pages_fetched,
            stop_reason=stop_reason,
            raw_count=len(accumulated),
            error=error,
            warnings=warnings,
        )


def dedupe_records(records: Iterable[BidRecord]) -> list[BidRecord]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[BidRecord] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def sort_by_post_date(records: Iterable[BidRecord]) -> list[BidRecord]:
    """Stable sort, newest post date first; undated records last."""
    records = list(records)
    dated = [r for r in records if r.post_date is not None]
    undated = [r for r in records if r.post_date is None]
    dated.sort(key=lambda r: r.post_date, reverse=True)  # type: ignore[arg-type,return-value]
    return dated + undated


def breakdown(snapshot: BidSnapshot) -> tuple[Counter[str], Counter[str]]:
    """Per-category and per-region notice counts."""
    categories = Counter(record.category for record in snapshot)
    regions = Counter(record.region for record in snapshot)
    return categories, regions


def log_breakdown(snapshot: BidSnapshot) -> None:
    categories, regions = breakdown(snapshot)
    if categories:
        logger.info("By category: " + ", ".join(f"{k}={v}" for k, v in categories.most_common()))
    if regions:
        logger.info("By region: " + ", ".join(f"{k}={v}" for k, v in regions.most_common()))
