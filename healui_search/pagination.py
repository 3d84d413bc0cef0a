"""
healui_search/pagination.py

Ellipsis-compressed page window for the results pager.

Small result sets show every page. Larger ones always show the first and
last page plus the current page with at most one neighbour on each side;
an ELLIPSIS marker stands in for every skipped run of pages.
"""

from __future__ import annotations

from typing import List, Union

ELLIPSIS = "ellipsis"
MAX_FULL_PAGES = 7

PageToken = Union[int, str]


def page_window(page: int, total_pages: int) -> List[PageToken]:
    if total_pages <= 0:
        return []
    if total_pages <= MAX_FULL_PAGES:
        return list(range(1, total_pages + 1))

    page = min(max(page, 1), total_pages)

    pages = [1]
    pages.extend(range(max(2, page - 1), min(total_pages - 1, page + 1) + 1))
    pages.append(total_pages)

    tokens: List[PageToken] = []
    previous = 0
    for number in pages:
        if previous and number - previous > 1:
            tokens.append(ELLIPSIS)
        tokens.append(number)
        previous = number
    return tokens
