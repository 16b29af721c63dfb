"""
Region and category classification from notice titles.

K-apt titles usually start with a bracketed region tag ("[서울] ...").
Categories are not exposed per row, so they are inferred from title
keywords with a fixed priority order.
"""

from __future__ import annotations

import re
from enum import Enum


class Region(str, Enum):
    """Canonical regions covered by the configured region codes."""

    SEOUL = "Seoul"
    INCHEON = "Incheon"
    GYEONGGI = "Gyeonggi"
    GANGWON = "Gangwon"
    CHUNGBUK = "Chungbuk"
    CHUNGNAM = "Chungnam"
    OTHER = "other"


class BidCategory(str, Enum):
    """Notice categories, in classification priority order."""

    SECURITY = "security"
    SERVICE = "service"
    CONTRACTOR = "contractor"
    OTHER = "other"


# Checked in order; the first alias contained in the tag wins.
REGION_ALIASES: list[tuple[Region, tuple[str, ...]]] = [
    (Region.SEOUL, ("서울", "seoul")),
    (Region.INCHEON, ("인천", "incheon")),
    (Region.GYEONGGI, ("경기", "gyeonggi")),
    (Region.GANGWON, ("강원", "gangwon")),
    (Region.CHUNGBUK, ("충북", "충청북도", "chungbuk", "chungcheongbuk")),
    (Region.CHUNGNAM, ("충남", "충청남도", "chungnam", "chungcheongnam")),
]

CATEGORY_KEYWORDS: list[tuple[BidCategory, tuple[str, ...]]] = [
    (BidCategory.SECURITY, ("경비", "보안", "security", "guard")),
    (
        BidCategory.SERVICE,
        ("용역", "서비스", "청소", "관리", "시설", "유지보수",
         "service", "maintenance", "cleaning"),
    ),
    (
        BidCategory.CONTRACTOR,
        ("사업자", "업체", "선정", "공사", "시공", "건설",
         "contractor", "construction"),
    ),
]

_REGION_TAG = re.compile(r"^\s*\[(.*?)\]")


def extract_region(title: str) -> Region:
    """Map the leading bracketed tag of a title to a Region.

    Titles without a tag, or with a tag naming no known region, map to
    ``Region.OTHER``.
    """
    match = _REGION_TAG.match(title or "")
    if not match:
        return Region.OTHER

    tag = match.group(1).lower()
    for region, aliases in REGION_ALIASES:
        if any(alias in tag for alias in aliases):
            return region

    return Region.OTHER


def classify_category(title: str) -> BidCategory:
    """Classify a notice by title keywords; the first matching rule wins."""
    lowered = (title or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return BidCategory.OTHER
