"""
Page fetcher for the K-apt notice listing.

One GET per listing page. Every request of a run shares the same filter
parameters, date window and cache-buster; only ``pageNo`` varies.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from zoneinfo import ZoneInfo

from kaptwatch.core.backends.base import Backend, FetchResult, RequestSpec
from kaptwatch.core.backends.http_backend import HttpBackend
from kaptwatch.core.config.models import SourceConfig
from kaptwatch.core.logging import get_logger


logger = get_logger("catalog.fetcher")

# Filter fields the listing form submits; empty means "any".
FIXED_PARAMS: dict[str, str] = {
    "searchBidGb": "bid_gb_1",
    "bidTitle": "",
    "aptName": "",
    "searchDateGb": "reg",
    "dateArea": "1",
    "bidState": "",
    "codeAuth": "",
    "codeWay": "",
    "codeAuthSub": "",
    "codeSucWay": "",
    "type": "4",
    "bidNum": "",
    "bidNo": "",
    "mainKaptCode": "",
    "aptCode": "",
}


def months_before(day: date, months: int) -> date:
    """Same day ``months`` calendar months earlier, clamped to month end."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


class PageFetcher:
    """Fetches listing pages for one synchronization run.

    The date window and ``dTime`` are fixed when the fetcher is created,
    so a fetcher should not outlive its run.
    """

    def __init__(
        self,
        config: SourceConfig,
        backend: Backend | None = None,
        *,
        run_at: datetime | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            config: Source configuration
            backend: Fetch backend (default: HttpBackend from config)
            run_at: Run timestamp (default: now); naive values are taken as UTC
        """
        self.config = config
        self.backend = backend or HttpBackend(
            timeout=config.timeout_seconds,
            user_agent=config.user_agent,
        )
        self.headers = {"Referer": config.base_url.rstrip("/") + "/"}

        tz = ZoneInfo(config.timezone)
        if run_at is None:
            run_at = datetime.now(tz)
        elif run_at.tzinfo is None:
            run_at = run_at.replace(tzinfo=ZoneInfo("UTC"))
        self.run_at = run_at

        today = run_at.astimezone(tz).date()
        self.date_start = months_before(today, config.lookback_months)
        self.date_end = today
        self.dtime = int(run_at.timestamp() * 1000)

    @property
    def url(self) -> str:
        return self.config.list_url

    def build_params(self, page_no: int) -> dict[str, str]:
        """Query parameters for one listing page."""
        if page_no < 1:
            raise ValueError(f"page_no must be >= 1, got {page_no}")

        categories = list(self.config.category_codes)
        params = dict(FIXED_PARAMS)
        params.update({
            "dateStart": self.date_start.isoformat(),
            "dateEnd": self.date_end.isoformat(),
            "codeClassifyType1": categories[0] if len(categories) > 0 else "",
            "codeClassifyType2": categories[1] if len(categories) > 1 else "",
            "codeClassifyType3": categories[2] if len(categories) > 2 else "",
            "bidArea": "|".join(self.config.region_codes),
            "pageNo": str(page_no),
            "dTime": str(self.dtime),
        })
        return params

    async def fetch_page(self, page_no: int) -> FetchResult:
        """Fetch one listing page.

        Raises:
            FetchError: On timeout, transport failure or non-2xx status
        """
        request = RequestSpec(
            url=self.url,
            params=self.build_params(page_no),
            headers=dict(self.headers),
            timeout=self.config.timeout_seconds,
            page_no=page_no,
        )
        logger.debug(f"Fetching page {page_no} ({self.date_start} ~ {self.date_end})")
        return await self.backend.fetch(request)

    async def close(self) -> None:
        await self.backend.close()

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
