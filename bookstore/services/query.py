"""Catalog listing: search, category filter, sorting and pagination."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import ColumnElement, asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.errors import ValidationError
from bookstore.models.book import Book, active_books

SORT_FIELDS = {
    "createdAt": Book.created_at,
    "updatedAt": Book.updated_at,
    "title": Book.title,
    "author": Book.author,
    "price": Book.price,
    "rating": Book.rating,
    "stock": Book.stock,
}
SORT_ORDERS = {"asc": asc, "desc": desc}

_SEARCH_COLUMNS = (Book.title, Book.author, Book.description)


@dataclass
class BookPage:
    items: list[Book]
    total: int
    page: int
    page_size: int
    categories: list[str] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_clause(search: Optional[str]) -> Optional[ColumnElement[bool]]:
    """A book matches when any search term appears in its title, author or description."""
    terms = (search or "").split()
    if not terms:
        return None
    conditions = [
        column.ilike(f"%{_escape_like(term)}%", escape="\\")
        for term in terms
        for column in _SEARCH_COLUMNS
    ]
    return or_(*conditions)


async def distinct_categories(db: AsyncSession) -> list[str]:
    query = active_books().with_only_columns(Book.category).distinct().order_by(Book.category)
    return list((await db.execute(query)).scalars().all())


async def list_books(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 12,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> BookPage:
    if page < 1:
        raise ValidationError("page must be 1 or greater")
    if page_size < 1:
        raise ValidationError("limit must be 1 or greater")
    sort_column = SORT_FIELDS.get(sort_by)
    if sort_column is None:
        raise ValidationError(f"Cannot sort by {sort_by!r}; use one of: {', '.join(SORT_FIELDS)}")
    direction = SORT_ORDERS.get(sort_order)
    if direction is None:
        raise ValidationError("sortOrder must be 'asc' or 'desc'")

    query = active_books()
    clause = search_clause(search)
    if clause is not None:
        query = query.where(clause)
    if category:
        query = query.where(Book.category == category)

    # Count total
    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    # Paginate; id breaks ties so pages never overlap
    offset = (page - 1) * page_size
    query = query.order_by(direction(sort_column), direction(Book.id)).offset(offset).limit(page_size)
    items = list((await db.execute(query)).scalars().all())

    return BookPage(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        categories=await distinct_categories(db),
    )
