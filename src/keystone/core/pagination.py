"""Pagination query/response contract shared by listing endpoints."""

from typing import Annotated, Generic, TypeVar

from fastapi import Depends, Query
from pydantic import BaseModel, Field

from keystone.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from keystone.core.database.repository import Page, SortOrder


ItemT = TypeVar("ItemT")


class PageQuery(BaseModel):
    """Validated listing parameters.

    ``sort_by`` and ``sort_order`` are passed through untouched: the
    repository falls back to its default column for anything outside its
    whitelist and to its default direction for anything but asc/desc.
    """

    page: int = Field(1, ge=1)
    limit: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    search: str | None = Field(None, max_length=100)
    sort_by: str | None = None
    sort_order: str = SortOrder.DESC


class PageMeta(BaseModel):
    """Pagination metadata."""

    page: int
    limit: int
    total: int
    total_pages: int


class PageResponse(BaseModel, Generic[ItemT]):
    """A page of items with its metadata."""

    data: list[ItemT]
    meta: PageMeta


def page_meta(page: Page) -> PageMeta:
    """Build response metadata from a repository page."""
    return PageMeta(
        page=page.page,
        limit=page.limit,
        total=page.total,
        total_pages=page.total_pages,
    )


async def get_page_query(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
    search: Annotated[str | None, Query(max_length=100)] = None,
    sort_by: Annotated[str | None, Query(alias="sortBy")] = None,
    sort_order: Annotated[str, Query(alias="sortOrder")] = SortOrder.DESC,
) -> PageQuery:
    """Read the pagination contract from the query string."""
    return PageQuery(
        page=page,
        limit=limit,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )


PageParams = Annotated[PageQuery, Depends(get_page_query)]
