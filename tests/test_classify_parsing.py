"""
Tests for title classification and text/date normalization.
"""

from datetime import date, datetime

import pytest

from kaptwatch.core.normalize import (
    BidCategory,
    Region,
    classify_category,
    clean_html_text,
    extract_region,
    normalize_whitespace,
    parse_date,
)


class TestExtractRegion:

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("[서울] 경비용역", Region.SEOUL),
            ("[인천 남동구] 청소", Region.INCHEON),
            ("  [경기] 도장공사", Region.GYEONGGI),
            ("[강원] 소독", Region.GANGWON),
            ("[충청북도 청주시] 경비", Region.CHUNGBUK),
            ("[충남] 승강기", Region.CHUNGNAM),
            ("[Seoul] security", Region.SEOUL),
        ],
    )
    def test_known_region_tags(self, title, expected):
        assert extract_region(title) == expected

    def test_unknown_region_tag(self):
        assert extract_region("[부산] 경비용역") == Region.OTHER

    def test_title_without_tag(self):
        assert extract_region("서울 경비용역 입찰") == Region.OTHER

    def test_tag_must_lead_the_title(self):
        assert extract_region("경비용역 [서울]") == Region.OTHER

    def test_empty_title(self):
        assert extract_region("") == Region.OTHER


class TestClassifyCategory:

    def test_security_wins_over_service(self):
        assert classify_category("[서울] 경비용역 업체 선정") == BidCategory.SECURITY

    def test_service_keywords(self):
        assert classify_category("[경기] 청소용역") == BidCategory.SERVICE
        assert classify_category("승강기 유지보수") == BidCategory.SERVICE

    def test_contractor_keywords(self):
        assert classify_category("[인천] 옥상 방수공사") == BidCategory.CONTRACTOR
        assert classify_category("재도장 사업자 선정") == BidCategory.CONTRACTOR

    def test_english_keywords_are_case_insensitive(self):
        assert classify_category("Building GUARD contract") == BidCategory.SECURITY

    def test_unmatched_title(self):
        assert classify_category("[서울] 승강기 교체") == BidCategory.OTHER


class TestParseDate:

    def test_iso_space_with_seconds(self):
        parsed = parse_date("2025-06-10 16:26:45")

        assert parsed.ok
        assert parsed.value == datetime(2025, 6, 10, 16, 26, 45)
        assert parsed.format_detected == "iso_space"

    def test_date_only(self):
        assert parse_date("2025-06-10").value == datetime(2025, 6, 10)

    def test_dotted_date(self):
        parsed = parse_date("2025.06.10")

        assert parsed.value == datetime(2025, 6, 10)
        assert parsed.format_detected == "dotted_date"

    def test_surrounding_whitespace(self):
        assert parse_date("  2025-06-10 09:00  ").value == datetime(2025, 6, 10, 9, 0)

    def test_empty_and_none(self):
        assert parse_date("").value is None
        assert parse_date(None).value is None

    def test_invalid_calendar_date_is_not_accepted_by_fast_path(self):
        parsed = parse_date("2025-02-30")

        assert parsed.format_detected != "iso_date"

    def test_datetime_and_date_passthrough(self):
        moment = datetime(2025, 6, 10, 8, 0)

        assert parse_date(moment).value == moment
        assert parse_date(date(2025, 6, 10)).value == datetime(2025, 6, 10)

    def test_original_text_is_preserved(self):
        assert parse_date(" 2025-06-10 ").original == " 2025-06-10 "


class TestTextCleanup:

    def test_normalize_whitespace(self):
        assert normalize_whitespace("  래미안 \n\t 아파트 ") == "래미안 아파트"
        assert normalize_whitespace(None) == ""

    def test_clean_html_text_entities(self):
        assert clean_html_text("A&nbsp;&amp;&nbsp;B") == "A & B"
        assert clean_html_text("a\xa0b") == "a b"
