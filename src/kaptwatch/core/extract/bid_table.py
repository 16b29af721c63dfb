"""
Listing table extractor for the K-apt notice list.

Finds the notice table structurally (by its header labels, not by
selectors) and turns each data row into a ``BidRecord``.

Column layout of the source table:

    0 순번 (id) | 1 구분 (type) | 2 방식 (method) | 3 공고명 (title)
    4 마감일 (deadline) | 5 상태 (status) | 6 단지명 (apartment) | 7 등록일 (post date)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import urlsplit

from lxml import etree, html as lxml_html
from lxml.html import HtmlElement

from kaptwatch.core.errors import ParseWarning
from kaptwatch.core.models import BidRecord
from kaptwatch.core.normalize.classify import classify_category, extract_region
from kaptwatch.core.normalize.parsing import clean_html_text, parse_date


DEFAULT_PAGE_SIZE = 10

# Both labels must appear in the table text
SEQUENCE_HEADER = "순번"
TITLE_HEADER = "공고명"

MIN_COLUMNS = 8

# Filler rows the source renders when a search has no results
NO_RESULT_PHRASES = ("데이터가 없습니다", "검색된", "없습니다")

_HTML_PARSER = lxml_html.HTMLParser(encoding="utf-8")


@dataclass
class PageParseResult:
    """Records parsed from one listing page."""

    records: list[BidRecord] = field(default_factory=list)
    has_next: bool = False
    warnings: list[ParseWarning] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.records)

    def add_warning(self, message: str, row_index: int | None = None) -> None:
        self.warnings.append(ParseWarning(message, row_index=row_index))


def parse_bid_page(
    html: str,
    *,
    base_url: str,
    page_size: int = DEFAULT_PAGE_SIZE,
    scraped_at: datetime | None = None,
) -> PageParseResult:
    """Parse one listing page into notice records.

    Args:
        html: Raw page markup
        base_url: Source URL, used to resolve detail links
        page_size: Rows the source renders per full page
        scraped_at: Extraction time stamped on every record

    Returns:
        PageParseResult. ``has_next`` is True exactly when the page held
        ``page_size`` records; the source exposes no reliable page count.
    """
    result = PageParseResult()
    scraped_at = scraped_at or datetime.utcnow()

    if not html or not html.strip():
        return result

    try:
        doc = _parse_document(html)
    except (etree.ParserError, ValueError) as e:
        result.add_warning(f"Document could not be parsed: {e}")
        return result

    table = _find_notice_table(doc)
    if table is None:
        result.add_warning("Notice table not found")
        return result

    origin = _origin(base_url)
    rows = table.xpath(".//tr")

    for row_idx, row in enumerate(rows):
        if row_idx == 0:
            continue

        cells = row.xpath("./td")
        if len(cells) < MIN_COLUMNS:
            continue

        try:
            record = _extract_row(cells, origin=origin, scraped_at=scraped_at)
        except Exception as e:
            result.add_warning(f"Row extraction failed: {e}", row_index=row_idx)
            continue

        if record is not None:
            result.records.append(record)

    result.has_next = len(result.records) == page_size
    return result


def _parse_document(html: str) -> HtmlElement:
    # lxml only accepts an XML encoding declaration in bytes input
    return lxml_html.document_fromstring(html.encode("utf-8"), parser=_HTML_PARSER)


def _find_notice_table(doc: HtmlElement) -> HtmlElement | None:
    """Return the first table whose text carries both header labels."""
    for table in doc.xpath("//table"):
        text = table.text_content()
        if SEQUENCE_HEADER in text and TITLE_HEADER in text:
            return table
    return None


def _extract_row(
    cells: list[HtmlElement],
    *,
    origin: str,
    scraped_at: datetime,
) -> BidRecord | None:
    """Build a record from one row, or None for filler rows."""
    texts = [_cell_text(cell) for cell in cells[:MIN_COLUMNS]]
    bid_id, bid_type, method, title, deadline_raw, status, apt_name, post_date_raw = texts

    if not _is_data_row(bid_id, title, apt_name):
        return None

    post_date = parse_date(post_date_raw)
    deadline = parse_date(deadline_raw)

    return BidRecord(
        id=bid_id,
        title=title,
        apt_name=apt_name,
        bid_type=bid_type,
        method=method,
        status=status,
        region=extract_region(title).value,
        category=classify_category(title).value,
        post_date=post_date.value,
        post_date_raw=post_date_raw,
        deadline=deadline.value,
        deadline_raw=deadline_raw,
        detail_link=_resolve_link(cells[3], origin),
        scraped_at=scraped_at,
    )


def _is_data_row(bid_id: str, title: str, apt_name: str) -> bool:
    if not bid_id or bid_id == SEQUENCE_HEADER or not bid_id.isdigit():
        return False
    if not title or not apt_name:
        return False
    return not any(phrase in title for phrase in NO_RESULT_PHRASES)


def _cell_text(cell: HtmlElement) -> str:
    return clean_html_text(cell.text_content())


def _resolve_link(cell: HtmlElement, origin: str) -> str:
    """Resolve the first anchor in a cell against the source origin.

    ``/path`` is origin-relative, ``http(s)://`` is kept, anything else
    is relative to the ``/bid/`` section.
    """
    hrefs = cell.xpath(".//a/@href")
    if not hrefs:
        return ""

    href = hrefs[0].strip()
    if not href:
        return ""
    if href.startswith("/"):
        return origin + href
    if href.startswith(("http://", "https://")):
        return href
    return f"{origin}/bid/{href}"


def _origin(base_url: str) -> str:
    parts = urlsplit(base_url)
    return f"{parts.scheme}://{parts.netloc}"
