import math
from dataclasses import dataclass

from fastapi import Depends, Query
from sqlalchemy.orm import Query as SAQuery

from config import Settings, get_settings

# Keeps the computed offset inside a 64-bit integer for any allowed page size.
MAX_PAGE = 2**31 - 1


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Page:
    """One slice of a query plus the totals needed to render page links."""

    def __init__(self, current_page: int, total_pages: int, total_count: int, items: list):
        self.current_page = current_page
        self.total_pages = total_pages
        self.total_count = total_count
        self.items = items


def page_params(
    page: int = Query(default=1, ge=1, le=MAX_PAGE),
    limit: int | None = Query(default=None, ge=1),
    settings: Settings = Depends(get_settings),
) -> PageParams:
    size = limit or settings.DEFAULT_PAGE_SIZE
    return PageParams(page=page, limit=min(size, settings.MAX_PAGE_SIZE))


def paginate(query: SAQuery, params: PageParams) -> Page:
    total = query.order_by(None).count()
    items = query.offset(params.offset).limit(params.limit).all()
    return Page(
        current_page=params.page,
        total_pages=math.ceil(total / params.limit),
        total_count=total,
        items=items,
    )
