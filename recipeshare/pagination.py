import math
from dataclasses import dataclass
from typing import Any

PAGE_SIZE = 9


@dataclass(frozen=True)
class PageWindow:
    offset: int
    limit: int


def parse_page_number(raw: Any) -> int:
    """Return a 1-based page number from a query parameter.

    Fractional values are truncated. Missing or non-numeric values fall back to
    page 1, as do values below 1.
    """

    if raw is None or isinstance(raw, bool):
        return 1
    try:
        page = int(float(str(raw).strip()))
    except (ValueError, OverflowError):
        return 1
    return max(page, 1)


def window(page: int, page_size: int = PAGE_SIZE) -> PageWindow:
    return PageWindow(offset=page_size * (page - 1), limit=page_size)


def total_pages(total_count: int, page_size: int = PAGE_SIZE) -> int:
    if total_count <= 0:
        return 0
    return math.ceil(total_count / page_size)


__all__ = ["PAGE_SIZE", "PageWindow", "parse_page_number", "total_pages", "window"]
