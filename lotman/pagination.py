"""
Pagination for list queries.
"""

from dataclasses import dataclass

from django.core.paginator import Paginator

from lotman.conf import lotman_settings


@dataclass(frozen=True)
class PageResult:
    """One page of a list query."""

    items: list
    total: int
    page: int
    total_pages: int


def paginate(queryset, page: int | None = None, limit: int | None = None) -> PageResult:
    """
    Slice a queryset into a page.

    limit defaults to PAGE_SIZE and is capped at MAX_PAGE_SIZE;
    out-of-range pages fall back to the nearest valid one.
    """
    size = min(limit or lotman_settings.PAGE_SIZE, lotman_settings.MAX_PAGE_SIZE)
    paginator = Paginator(queryset, size)
    current = paginator.get_page(page or 1)
    return PageResult(
        items=list(current.object_list),
        total=paginator.count,
        page=current.number,
        total_pages=paginator.num_pages,
    )
