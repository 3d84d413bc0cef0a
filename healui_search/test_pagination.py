# healui_search/test_pagination.py
# Unit tests for the ellipsis page window

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from healui_search.pagination import ELLIPSIS, MAX_FULL_PAGES, page_window

E = ELLIPSIS


def test_no_pages():
    assert page_window(1, 0) == []


@pytest.mark.parametrize("total", [1, 5, MAX_FULL_PAGES])
def test_small_sets_show_every_page(total):
    assert page_window(1, total) == list(range(1, total + 1))


def test_middle_page_has_both_ellipses():
    assert page_window(9, 12) == [1, E, 8, 9, 10, E, 12]


def test_first_page():
    assert page_window(1, 10) == [1, 2, E, 10]


def test_near_start():
    assert page_window(2, 10) == [1, 2, 3, E, 10]


def test_last_page():
    assert page_window(12, 12) == [1, E, 11, 12]


def test_out_of_range_page_is_clamped():
    assert page_window(99, 10) == [1, E, 9, 10]
    assert page_window(0, 10) == [1, 2, E, 10]


def test_window_properties():
    """First/last always present, current page present, no adjacent ellipses."""
    for total in range(MAX_FULL_PAGES + 1, 30):
        for page in range(1, total + 1):
            tokens = page_window(page, total)
            assert tokens[0] == 1
            assert tokens[-1] == total
            assert page in tokens
            assert len(tokens) <= 7
            for left, right in zip(tokens, tokens[1:]):
                assert not (left == E and right == E)
            numbers = [t for t in tokens if t != E]
            assert numbers == sorted(set(numbers))


def test_first_page_of_ten_uses_gap_rule():
    """
    Page 1 of 10 renders [1, 2, ..., 10], not [1, 2, 3, ..., 10].

    Neighbours of the current page are shown and any gap of two or more
    pages collapses to a single ellipsis. Page 3 is not a neighbour of
    page 1, so it falls inside the collapsed gap.
    """
    tokens = page_window(1, 10)
    assert tokens == [1, 2, E, 10]
    assert 3 not in tokens
